# utils/kakao_client.py

import logging

import requests

from config import Config

logger = logging.getLogger(__name__)


def fetch_kakao_profile(access_token: str, url: str = None, timeout: int = None) -> dict:
    """
    Exchanges a Kakao access token for the user's Kakao profile.
    Raises RuntimeError when Kakao rejects the token or is unreachable.
    """
    url = url or Config.KAKAO_USER_URL
    timeout = timeout or Config.KAKAO_TIMEOUT
    headers = {"Authorization": f"Bearer {access_token}"}

    try:
        response = requests.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.HTTPError as he:
        status = getattr(he.response, "status_code", None)
        raise RuntimeError(f"Kakao rejected the token: {status}") from he
    except requests.RequestException as e:
        raise RuntimeError(f"Kakao request failed: {e}") from e

    try:
        profile = response.json()
    except ValueError as e:
        raise RuntimeError("Failed to parse Kakao response JSON") from e

    if not isinstance(profile, dict) or "id" not in profile:
        raise RuntimeError("Kakao response has no user id")

    logger.debug("Kakao profile fetched for id=%s", profile["id"])
    return profile
