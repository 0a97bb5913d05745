"""Battle.net profile API client.

Uses an app token from the client-credentials flow for public character
lookups. The authorization-code exchange is exposed for account linking but
nothing in this service stores user tokens.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from stillnoob.blizzard.constants import BLIZZARD_CLASS_MAP, spec_info
from stillnoob.utils import normalize_name
from stillnoob.wcl.auth import ClientCredentialsAuth

logger = logging.getLogger(__name__)


class BlizzardAPIError(Exception):
    """Raised when Battle.net rejects a token or profile request."""


class BlizzardAuth(ClientCredentialsAuth):
    service = "Blizzard"
    error_class = BlizzardAPIError


def oauth_base(region: str) -> str:
    return f"https://{region}.battle.net/oauth"


def api_base(region: str) -> str:
    return f"https://{region}.api.blizzard.com"


def character_path(realm_slug: str, name: str) -> str:
    return (
        f"/profile/wow/character/{quote(realm_slug, safe='')}"
        f"/{quote(normalize_name(name), safe='')}"
    )


class BlizzardClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        region: str = "eu",
        locale: str = "en_US",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self.region = region
        self.locale = locale
        self.auth = BlizzardAuth(client_id, client_secret, f"{oauth_base(region)}/token")
        self._http = http_client
        self._owns_http = http_client is None

    @classmethod
    def from_settings(cls, settings) -> "BlizzardClient":
        cfg = settings.blizzard
        return cls(
            cfg.client_id,
            cfg.client_secret.get_secret_value(),
            region=cfg.region,
            locale=cfg.locale,
        )

    async def __aenter__(self):
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=10.0)
        return self

    async def __aexit__(self, *args):
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    def authorize_url(self, state: str, redirect_uri: str) -> str:
        params = urlencode({
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "wow.profile",
            "state": state,
        })
        return f"{oauth_base(self.region)}/authorize?{params}"

    async def exchange_code(self, code: str, redirect_uri: str) -> dict:
        """Trade an authorization code for a user access token."""
        response = await self._http.post(
            f"{oauth_base(self.region)}/token",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            },
            auth=(self._client_id, self._client_secret),
        )
        if response.status_code >= 400:
            raise BlizzardAPIError(f"{response.status_code}: {response.text}")
        data = response.json()
        return {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "expires_in": data.get("expires_in"),
        }

    async def _get(self, path: str, region: str, *, locale: bool) -> httpx.Response:
        token = await self.auth.get_token(self._http)
        params = {"namespace": f"profile-{region}"}
        if locale:
            params["locale"] = self.locale
        return await self._http.get(
            f"{api_base(region)}{path}",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def get_character_profile(
        self, name: str, realm_slug: str, region: str | None = None,
    ) -> dict | None:
        region = region or self.region
        response = await self._get(character_path(realm_slug, name), region, locale=True)
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise BlizzardAPIError(f"{response.status_code}: {response.text[:200]}")

        data = response.json()
        spec, role = spec_info((data.get("active_spec") or {}).get("id"))
        realm = data.get("realm") or {}
        return {
            "name": data.get("name"),
            "realm": realm.get("name"),
            "realm_slug": realm.get("slug"),
            "level": data.get("level"),
            "class_name": BLIZZARD_CLASS_MAP.get(
                (data.get("character_class") or {}).get("id"),
            ),
            "spec": spec,
            "raid_role": role,
            "average_item_level": data.get("average_item_level"),
            "equipped_item_level": data.get("equipped_item_level"),
        }

    async def get_character_media(
        self, name: str, realm_slug: str, region: str | None = None,
    ) -> dict | None:
        region = region or self.region
        try:
            response = await self._get(
                f"{character_path(realm_slug, name)}/character-media", region,
                locale=False,
            )
            response.raise_for_status()
        except (httpx.HTTPError, BlizzardAPIError) as exc:
            logger.warning("Character media unavailable for %s-%s: %s", name, realm_slug, exc)
            return None

        assets = {a.get("key"): a.get("value") for a in response.json().get("assets") or []}
        return {
            "avatar": assets.get("avatar"),
            "inset": assets.get("inset"),
            "main": assets.get("main"),
            "main_raw": assets.get("main-raw"),
        }
