# src/utils/settings.py
import os

from dotenv import load_dotenv

load_dotenv()

API_BASE_URL = os.getenv("LEVELUP_API_URL", "http://localhost:8080/api")
REQUEST_TIMEOUT = float(os.getenv("LEVELUP_REQUEST_TIMEOUT", 5))
# overall bound for one call including retries
REQUEST_DEADLINE = float(os.getenv("LEVELUP_REQUEST_DEADLINE", 20))

STORE_PATH = os.getenv("LEVELUP_STORE_PATH", "data/levelup.sqlite")

# empty url disables cross-instance order sync
BROADCAST_URL = os.getenv("LEVELUP_BROADCAST_URL", "")
BROADCAST_CHANNEL = os.getenv("LEVELUP_BROADCAST_CHANNEL", "levelup-orders")

ADMIN_POLL_SECONDS = float(os.getenv("LEVELUP_ADMIN_POLL_SECONDS", 8))
DISCOUNT_RATE = float(os.getenv("LEVELUP_DISCOUNT_RATE", 0.20))

# store keys
CART_KEY = "cart"
POINTS_KEY = "levelup_points"
SESSION_USER_KEY = "current_user"
