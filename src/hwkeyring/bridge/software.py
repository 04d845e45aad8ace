"""Software signing bridge.

Derives keys from an in-memory BIP39 seed and signs locally. Suitable for:
- Development without a physical device
- Tests that need real signatures and real derivation

WARNING: The seed lives in process memory. Never use this bridge for
accounts holding funds.
"""

import logging
from typing import Optional

from bip_utils import Bip32Secp256k1, Bip39SeedGenerator
from eth_account import Account
from eth_account.messages import encode_defunct

from hwkeyring.bridge.base import BridgeResponse, SigningBridge
from hwkeyring.config import get_settings
from hwkeyring.signing.transactions import bridge_record_to_transaction_dict
from hwkeyring.signing.typed_data import signable_typed_data

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_ID = "software-0"


def _to_device_hex(value: int) -> str:
    """Even-length hex without prefix, as devices report signature parts."""
    digits = format(value, "x")
    return digits if len(digits) % 2 == 0 else f"0{digits}"


class SoftwareBridge(SigningBridge):
    """Bridge backed by a seed held in memory.

    The seed comes from the `seed` argument, the `mnemonic` argument, or
    the HWKEYRING_DEVICE_SEED_PHRASE setting, in that order.
    """

    def __init__(
        self,
        mnemonic: Optional[str] = None,
        seed: Optional[bytes] = None,
        model: str = "T",
    ):
        super().__init__()
        if seed is None:
            mnemonic = mnemonic or get_settings().device_seed_phrase
            if not mnemonic:
                raise ValueError("SoftwareBridge needs a seed or mnemonic")
            seed = Bip39SeedGenerator(mnemonic).Generate()

        self._master = Bip32Secp256k1.FromSeed(seed)
        self._device_model = model
        self._initialized = False
        self.init_config: Optional[dict] = None

    # Device lifecycle
    def connect(self, device_id: str = DEFAULT_DEVICE_ID) -> None:
        """Simulate a device being plugged in."""
        self.connected_devices.add(device_id)
        self.model = self._device_model
        logger.info(f"Device connected: {device_id}")
        self.emit_clean_up(True)

    def disconnect(self, device_id: str = DEFAULT_DEVICE_ID) -> None:
        """Simulate a device being unplugged."""
        self.connected_devices.discard(device_id)
        logger.info(f"Device disconnected: {device_id}")
        self.emit_clean_up(True)

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self, config: dict) -> None:
        if self._initialized:
            return
        self.init_config = config
        self._initialized = True
        logger.debug(f"Software bridge initialized with {config}")

    async def dispose(self) -> None:
        self._initialized = False
        logger.debug("Software bridge disposed")

    def _derive(self, path: str):
        return self._master.DerivePath(path)

    def _private_key(self, path: str) -> bytes:
        return self._derive(path).PrivateKey().Raw().ToBytes()

    # Bridge requests
    async def get_public_key(self, bundle: list[dict]) -> BridgeResponse:
        payload = []
        for item in bundle:
            ctx = self._derive(item["path"])
            payload.append({
                "path": item["path"],
                "public_key": ctx.PublicKey().RawCompressed().ToHex(),
                "chain_code": ctx.ChainCode().ToHex(),
            })
        return BridgeResponse.ok(payload)

    async def ethereum_sign_transaction(self, path: str, transaction: dict) -> BridgeResponse:
        tx_dict = bridge_record_to_transaction_dict(transaction)
        signed = Account.sign_transaction(tx_dict, self._private_key(path))
        return BridgeResponse.ok({
            "v": _to_device_hex(signed.v),
            "r": _to_device_hex(signed.r),
            "s": _to_device_hex(signed.s),
        })

    async def ethereum_sign_message(self, path: str, message: str, hex: bool = True) -> BridgeResponse:
        signable = encode_defunct(hexstr=message) if hex else encode_defunct(text=message)
        private_key = self._private_key(path)
        signed = Account.sign_message(signable, private_key)
        return BridgeResponse.ok({
            "address": Account.from_key(private_key).address,
            "signature": bytes(signed.signature).hex(),
        })

    async def ethereum_sign_typed_data(
        self,
        path: str,
        data: dict,
        metamask_v4_compat: bool,
        domain_separator_hash: Optional[str] = None,
        message_hash: Optional[str] = None,
    ) -> BridgeResponse:
        private_key = self._private_key(path)
        signed = Account.sign_message(signable_typed_data(data), private_key)
        return BridgeResponse.ok({
            "address": Account.from_key(private_key).address,
            "signature": bytes(signed.signature).hex(),
        })
