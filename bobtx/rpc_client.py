"""Typed JSON-RPC client for fetching raw transactions from a node.

Only the read paths the parser needs are exposed: raw transaction lookup and
the block header used to attach height and time to a parsed record.
Configuration is shared via :func:`bobtx.config.load_rpc_config`.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

import requests
from requests import RequestException, Response

from .config import RPCConfig, load_rpc_config
from .model import BlockInfo

logger = logging.getLogger(__name__)


class RPCError(RuntimeError):
    """Raised when the node responds with an RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error: RPCError) -> str | None:
    """Return a short remediation hint for common lookup failures."""

    if error.code == -5 and "No such mempool or blockchain transaction" in error.message:
        return (
            "The node does not know this transaction. Enable txindex=1 on the node, "
            "or pass the raw hex with --hex instead."
        )
    if error.code == -8:
        return "The txid is malformed; it must be 64 hex characters."
    return None


class NodeRPCClient:
    """Thin JSON-RPC client; each helper maps directly to one RPC method."""

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._session = requests.Session()

    @classmethod
    def from_env(cls) -> "NodeRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.config.base_url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                auth=(self.config.user, self.config.password),
                timeout=30,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure the node is reachable and BOBTX_RPC_* variables "
                "(or ~/.bobtx.yaml) point to the right host and port."
            ) from exc

        body = self._json_body(response)
        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        if not response.ok:
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            if response.status_code == 401:
                raise RPCTransportError(
                    "Unauthorized (401). Ensure BOBTX_RPC_USER/BOBTX_RPC_PASSWORD (or ~/.bobtx.yaml) "
                    "contain valid credentials.",
                    status_code=response.status_code,
                )
            raise RPCTransportError(
                f"RPC server returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise RPCTransportError("RPC server returned malformed JSON")
        return body.get("result")

    def _json_body(self, response: Response) -> Any:
        # Nodes report JSON-RPC errors with HTTP 500 and a JSON body, so the
        # body is read before the status is checked.
        try:
            return response.json()
        except ValueError:
            logger.debug("RPC JSON parse error: %s", response.text)
            if response.ok:
                raise RPCTransportError("RPC server returned malformed JSON")
            return None

    # Convenience wrappers -------------------------------------------------

    def getrawtransaction(self, txid: str, verbose: bool = False) -> Any:
        return self.call("getrawtransaction", [txid, int(verbose)])

    def getblockheader(self, block_hash: str) -> Dict[str, Any]:
        return self.call("getblockheader", [block_hash, True])

    def fetch_transaction(self, txid: str) -> Tuple[str, BlockInfo | None]:
        """Return the raw hex of ``txid`` and its block info when confirmed."""

        verbose = self.getrawtransaction(txid, verbose=True)
        if not isinstance(verbose, dict) or not verbose.get("hex"):
            raise RPCTransportError(f"getrawtransaction returned no hex for {txid}")

        block_hash = verbose.get("blockhash")
        if not block_hash:
            return verbose["hex"], None
        header = self.getblockheader(block_hash)
        block = BlockInfo(
            height=int(header.get("height", 0)),
            time=int(verbose.get("blocktime") or header.get("time", 0)),
        )
        return verbose["hex"], block
