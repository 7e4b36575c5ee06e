# services/ledger/stellar_submitter.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from stellar_sdk import Keypair, Network, SorobanServer, TransactionBuilder, scval
from stellar_sdk.exceptions import SdkError
from stellar_sdk.soroban_rpc import SendTransactionStatus

from config.settings import OracleSettings
from services.oracle.errors import SubmissionError

logger = logging.getLogger(__name__)

NETWORK_PASSPHRASES = {
    "testnet": Network.TESTNET_NETWORK_PASSPHRASE,
    "futurenet": Network.FUTURENET_NETWORK_PASSPHRASE,
    "public": Network.PUBLIC_NETWORK_PASSPHRASE,
}

SET_PRICE_FUNCTION = "set_price"
BASE_FEE_STROOPS = 10_000
TX_TIMEOUT_S = 30


class LedgerSubmitter(Protocol):
    network: str

    @property
    def provider_configured(self) -> bool: ...

    @property
    def contract_configured(self) -> bool: ...

    @property
    def configured(self) -> bool: ...

    async def submit_price(self, symbol: str, price_minor: int) -> str:
        """Return the transaction hash or raise SubmissionError."""
        ...


def _load_keypair(secret: Optional[str]) -> Optional[Keypair]:
    if not secret:
        return None
    try:
        return Keypair.from_secret(secret)
    except (SdkError, ValueError) as e:
        logger.error("PROVIDER_SECRET is not a valid Stellar secret seed: %s", type(e).__name__)
        return None


class SorobanLedgerSubmitter:
    """
    Publishes prices through the oracle contract's
    `set_price(pair: Symbol, price: i64, provider: Address)`.

    stellar-sdk's SorobanServer is blocking, so each submission runs in a
    worker thread and is bounded by `timeout_s`.
    """

    def __init__(
        self,
        *,
        rpc_url: str,
        network: str = "testnet",
        provider_secret: Optional[str] = None,
        contract_id: Optional[str] = None,
        timeout_s: float = 30.0,
        server: Optional[SorobanServer] = None,
    ) -> None:
        self.network = network
        self.network_passphrase = NETWORK_PASSPHRASES.get(network, Network.TESTNET_NETWORK_PASSPHRASE)
        self.contract_id = contract_id
        self.timeout_s = timeout_s
        self._keypair = _load_keypair(provider_secret)
        self._server = server or SorobanServer(rpc_url)

        logger.info("Contract: %s", contract_id or "Not deployed")
        if self._keypair is None:
            logger.info("Provider: Not configured")
        else:
            logger.info("Provider: Configured (%s)", self._keypair.public_key)

    @classmethod
    def from_settings(cls, settings: OracleSettings) -> "SorobanLedgerSubmitter":
        return cls(
            rpc_url=settings.stellar_rpc_url,
            network=settings.stellar_network,
            provider_secret=settings.provider_secret,
            contract_id=settings.contract_id,
            timeout_s=settings.ledger_timeout_s,
        )

    @property
    def provider_configured(self) -> bool:
        return self._keypair is not None

    @property
    def contract_configured(self) -> bool:
        return bool(self.contract_id)

    @property
    def configured(self) -> bool:
        return self.provider_configured and self.contract_configured

    def _submit_blocking(self, symbol: str, price_minor: int) -> str:
        if self._keypair is None or not self.contract_id:
            raise SubmissionError(f"{symbol}: ledger not configured")
        account = self._server.load_account(self._keypair.public_key)
        tx = (
            TransactionBuilder(
                source_account=account,
                network_passphrase=self.network_passphrase,
                base_fee=BASE_FEE_STROOPS,
            )
            .set_timeout(TX_TIMEOUT_S)
            .append_invoke_contract_function_op(
                contract_id=self.contract_id,
                function_name=SET_PRICE_FUNCTION,
                parameters=[
                    scval.to_symbol(symbol),
                    scval.to_int64(price_minor),
                    scval.to_address(self._keypair.public_key),
                ],
            )
            .build()
        )
        tx = self._server.prepare_transaction(tx)
        tx.sign(self._keypair)

        resp = self._server.send_transaction(tx)
        if resp.status in (SendTransactionStatus.ERROR, SendTransactionStatus.TRY_AGAIN_LATER):
            raise SubmissionError(
                f"{symbol}: send_transaction status={resp.status.value} "
                f"error={resp.error_result_xdr}"
            )
        return resp.hash

    async def submit_price(self, symbol: str, price_minor: int) -> str:
        if not self.configured:
            raise SubmissionError(f"{symbol}: ledger not configured")

        logger.info("Submitting %s: $%.2f", symbol, price_minor / 100)
        try:
            tx_hash = await asyncio.wait_for(
                asyncio.to_thread(self._submit_blocking, symbol, price_minor),
                timeout=self.timeout_s,
            )
        except SubmissionError:
            raise
        except asyncio.TimeoutError as e:
            raise SubmissionError(f"{symbol}: submission timed out after {self.timeout_s}s") from e
        except (SdkError, ValueError) as e:
            raise SubmissionError(f"{symbol}: {e}") from e

        logger.info("Submitted %s tx=%s", symbol, tx_hash)
        return tx_hash
