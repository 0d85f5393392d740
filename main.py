import logging
from functools import lru_cache

import uvicorn
from fastapi import Depends, FastAPI, Request, Response

from pay_errors import PayError
from wechat_pay import WeChatPay

# ---------------------------
# 基本設定
# ---------------------------
app = FastAPI()
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

XML_MEDIA_TYPE = "application/xml"


@lru_cache(maxsize=1)
def get_pay() -> WeChatPay:
    return WeChatPay.from_config()


# ---------------------------
# FastAPI Endpoints
# ---------------------------
@app.post("/wechat/notify")
async def wechat_notify(req: Request, pay: WeChatPay = Depends(get_pay)):
    body: bytes = await req.body()

    try:
        result = pay.parse_notification(body)
    except PayError as e:
        logging.warning("notify rejected: %s", type(e).__name__)
        return Response(pay.notification_reply(False, type(e).__name__), media_type=XML_MEDIA_TYPE)

    logging.info(
        "notify accepted: out_trade_no=%s result=%s", result.get("out_trade_no"), result.status
    )
    return Response(pay.notification_reply(), media_type=XML_MEDIA_TYPE)


@app.get("/health")
async def health():
    return {"status": "ok"}


# ---------------------------
# 執行 FastAPI
# ---------------------------
if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, log_level="warning")
