import os

from dotenv import load_dotenv

load_dotenv()

WECHAT_APP_ID = os.getenv("WECHAT_APP_ID", "")
WECHAT_MCH_ID = os.getenv("WECHAT_MCH_ID", "")
WECHAT_API_KEY = os.getenv("WECHAT_API_KEY", "")
WECHAT_SIGN_TYPE = os.getenv("WECHAT_SIGN_TYPE", "MD5")
WECHAT_CERT_FILE = os.getenv("WECHAT_CERT_FILE")
WECHAT_KEY_FILE = os.getenv("WECHAT_KEY_FILE")
WECHAT_SANDBOX = os.getenv("WECHAT_SANDBOX", "").lower() in ("1", "true", "yes")
HTTP_TIMEOUT = float(os.getenv("WECHAT_HTTP_TIMEOUT", "10"))
