import logging

import requests

import config
import xml_codec

logger = logging.getLogger(__name__)

HEADERS = {"Content-Type": "text/xml; charset=utf-8"}


def post_xml(url: str, params: dict[str, str]) -> bytes:
    logger.debug("POST %s", url)
    res = requests.post(
        url, data=xml_codec.encode(params), headers=HEADERS, timeout=config.HTTP_TIMEOUT
    )
    res.raise_for_status()
    return res.content


def post_xml_over_tls(url: str, cert: tuple[str, str], params: dict[str, str]) -> bytes:
    """POST ``params`` presenting the merchant client certificate ``cert``."""
    logger.debug("POST %s (client certificate)", url)
    res = requests.post(
        url,
        data=xml_codec.encode(params),
        headers=HEADERS,
        cert=cert,
        timeout=config.HTTP_TIMEOUT,
    )
    res.raise_for_status()
    return res.content
