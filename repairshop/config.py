import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./repairshop.db")

# WhatsApp / SMS notifications
# Messages are OFF unless explicitly enabled - avoids spamming clients from dev/staging
MESSAGES_ENABLED = os.getenv("MESSAGES_ENABLED", "false").lower() == "true"
# Shop operator (owner) receives every order notification
OPERATOR_PHONE = os.getenv("OPERATOR_PHONE")
# Number printed in client messages for support questions
SUPPORT_PHONE = os.getenv("SUPPORT_PHONE", OPERATOR_PHONE)
# Country code prepended to local numbers (58 = Venezuela)
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "58")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))

# Evolution API (WhatsApp gateway)
EVOLUTION_API_URL = os.getenv("EVOLUTION_API_URL")
EVOLUTION_API_KEY = os.getenv("EVOLUTION_API_KEY")
EVOLUTION_INSTANCE = os.getenv("EVOLUTION_INSTANCE", "Multiservice")

# Twilio SMS fallback (optional)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")

# Order codes
ORDER_CODE_MAX_ATTEMPTS = int(os.getenv("ORDER_CODE_MAX_ATTEMPTS", "3"))
ORDER_CODE_RETRY_DELAY_MS = int(os.getenv("ORDER_CODE_RETRY_DELAY_MS", "200"))

# Tax (IVA) applied to order totals when the order has include_iva set
IVA_RATE = os.getenv("IVA_RATE", "0.16")
