"""Content reference -> gateway URL rewriting (no I/O)."""

from __future__ import annotations

DEFAULT_GATEWAY_BASE = "https://gateway.pinata.cloud/ipfs/"
DEFAULT_NATIVE_SCHEME = "ipfs://"


class GatewayResolver:
    """Rewrite content references (``ipfs://<cid>`` or bare ``<cid>``) onto an HTTP gateway base.

    References that are already HTTP(S) URLs are returned unchanged, so resolving
    an already-resolved URL is stable.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_GATEWAY_BASE,
        native_scheme: str = DEFAULT_NATIVE_SCHEME,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.native_scheme = native_scheme

    def resolve(self, ref: str) -> str:
        ref = ref.strip()
        if ref.startswith(self.native_scheme):
            return self.base_url + ref[len(self.native_scheme) :]
        if ref.startswith(self.base_url) or ref.startswith(("http://", "https://")):
            return ref
        return self.base_url + ref.lstrip("/")
