# ollachat/constants.py

APP_NAME = "OllaChat"
__version__ = "4.1.0"
DEFAULT_LOG_FILENAME = "app.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5

DEFAULT_OLLAMA = "http://127.0.0.1:11434"
DEFAULT_TIMEOUT = 269
FALLBACK_MODEL = "llama3"

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
DEFAULT_TEMPERATURE = 0.7
DEFAULT_NUM_CTX = 4096
