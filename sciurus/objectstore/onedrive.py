import contextlib
import logging
from urllib.parse import urlencode

from aiohttp import ClientError, ClientSession

logger = logging.getLogger(__name__)

AUTHORIZE_URL = 'https://login.live.com/oauth20_authorize.srf'
TOKEN_URL = 'https://login.live.com/oauth20_token.srf'
DESKTOP_APP_URI = 'https://login.live.com/oauth20_desktop.srf'
SCOPE = 'onedrive.readwrite offline_access'

REFRESH_TOKEN_KEY = 'onedrive.refresh_token'
CODE_KEY = 'onedrive.code'


class OneDriveError(Exception):
    """Base class for OneDrive client failures."""


class AuthorizationRequired(OneDriveError):
    """The user has to authorize the app in a browser and store the code."""

    def __init__(self, url):
        super().__init__(f"Authorization code required, open {url}")
        self.url = url


class TokenError(OneDriveError):
    """The token endpoint rejected the request or sent an unusable reply."""


class OneDriveClient:
    """OAuth token handling for OneDrive.

    Tokens live in the shared config under the 'onedrive' section. If a lock
    is given it is held around every config access.
    """

    def __init__(self, client_id, config, lock=None, token_url=TOKEN_URL):
        self.client_id = client_id
        self.config = config
        self.lock = lock if lock is not None else contextlib.nullcontext()
        self.token_url = token_url
        self.access_token = ''
        self.expires_in = 0
        self.user_id = ''
        with self.lock:
            self.refresh_token = config.get_string(REFRESH_TOKEN_KEY, '')

    def authorize_url(self):
        query = urlencode({
            'client_id': self.client_id,
            'scope': SCOPE,
            'response_type': 'code',
            'redirect_uri': DESKTOP_APP_URI,
        })
        return f"{AUTHORIZE_URL}?{query}"

    async def access_test(self):
        """Make sure a usable access token is available."""
        if not self.refresh_token:
            with self.lock:
                code = self.config.get_string(CODE_KEY, '')
            if code:
                with self.lock:
                    self.config.delete(CODE_KEY)
                try:
                    await self._update_access_token({
                        'grant_type': 'authorization_code',
                        'code': code,
                    })
                    return
                except TokenError as e:
                    logger.warning("Authorization code exchange failed: %s", e)

            url = self.authorize_url()
            with self.lock:
                self.config.set(CODE_KEY, url)
            logger.warning("OneDrive authorization required")
            raise AuthorizationRequired(url)

        await self.update_access_token()

    async def update_access_token(self):
        """Get a new access token from the stored refresh token."""
        await self._update_access_token({
            'grant_type': 'refresh_token',
            'refresh_token': self.refresh_token,
        })

    async def _update_access_token(self, fields):
        data = {
            'client_id': self.client_id,
            'redirect_uri': DESKTOP_APP_URI,
            **fields,
        }
        try:
            async with ClientSession() as session:
                async with session.post(self.token_url, data=data) as resp:
                    if resp.status != 200:
                        error = await resp.text()
                        raise TokenError(f"Token request failed ({resp.status}): {error}")
                    body = await resp.json(content_type=None)
        except ClientError as e:
            raise TokenError(f"Token request failed: {e}") from e
        except ValueError as e:
            raise TokenError(f"Token response is not JSON: {e}") from e

        try:
            user_id = body['user_id']
            expires_in = body['expires_in']
            access_token = body['access_token']
            refresh_token = body['refresh_token']
        except (KeyError, TypeError) as e:
            raise TokenError(f"Token response is missing {e}") from e
        if not all(isinstance(v, str) for v in (user_id, access_token, refresh_token)):
            raise TokenError("Token response has non-string fields")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in < 0:
            raise TokenError(f"Token response has invalid expires_in: {expires_in!r}")

        self.user_id = user_id
        self.expires_in = expires_in
        self.access_token = access_token
        self.refresh_token = refresh_token
        with self.lock:
            self.config.set(REFRESH_TOKEN_KEY, refresh_token)
        logger.info("Refreshed OneDrive access token for user %s", user_id)
