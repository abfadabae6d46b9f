"""Address encoding — bech32 P2WPKH, Base58Check P2SH, WIF.

Every function takes the :class:`NetworkParams` to encode for, so the same
code serves mainnet and testnet4.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import bech32

from glacier_wallet.btc.keys import base58check_decode, base58check_encode
from glacier_wallet.btc.script import p2pkh_lock_script, p2sh_lock_script, p2wpkh_lock_script
from glacier_wallet.utils.crypto import hash160

if TYPE_CHECKING:
    from glacier_wallet.btc.network import NetworkParams


def pubkey_to_p2wpkh_address(pubkey: bytes, network: NetworkParams) -> str:
    """Native segwit v0 address for a compressed public key."""
    if len(pubkey) != 33:
        msg = f"P2WPKH requires a 33-byte compressed pubkey, got {len(pubkey)}"
        raise ValueError(msg)
    address = bech32.encode(network.bech32_hrp, 0, hash160(pubkey))
    if address is None:
        msg = "bech32 encoding failed"
        raise ValueError(msg)
    return address


def script_to_p2sh_address(redeem_script: bytes, network: NetworkParams) -> str:
    """P2SH address committing to Hash160(*redeem_script*)."""
    return base58check_encode(bytes([network.p2sh_version]) + hash160(redeem_script))


def address_to_script_pubkey(address: str, network: NetworkParams) -> bytes:
    """Resolve an address to the locking script that pays it.

    Supports P2WPKH (bech32 v0, 20-byte program), P2SH and P2PKH.

    Raises:
        ValueError: If the address is invalid or not for *network*.
    """
    if address.lower().startswith(network.bech32_hrp + "1"):
        witver, witprog = bech32.decode(network.bech32_hrp, address)
        if witver != 0 or witprog is None or len(witprog) != 20:
            msg = f"Unsupported segwit address: {address}"
            raise ValueError(msg)
        return p2wpkh_lock_script(bytes(witprog))

    payload = base58check_decode(address)
    if len(payload) != 21:
        msg = f"Invalid address payload length: {len(payload)}"
        raise ValueError(msg)
    version, body = payload[0], payload[1:]
    if version == network.p2sh_version:
        return p2sh_lock_script(body)
    if version == network.p2pkh_version:
        return p2pkh_lock_script(body)
    msg = f"Address version {version:#04x} does not belong to {network.name}"
    raise ValueError(msg)


def privkey_to_wif(privkey: bytes, network: NetworkParams, *, compressed: bool = True) -> str:
    """Encode a 32-byte private key as WIF (Wallet Import Format)."""
    payload = bytes([network.wif_version]) + privkey
    if compressed:
        payload += b"\x01"
    return base58check_encode(payload)
