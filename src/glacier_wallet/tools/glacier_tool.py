#!/usr/bin/env python3
"""Glacier Tool — generate a wallet, derive addresses, inspect locks.

A standalone CLI utility around the lock wallet. Network, mnemonic and
chain-data URL come from the usual ``GLACIER_*`` settings:

    # Generate a new mnemonic and show its first receive addresses
    glacier-tool generate

    # Derive receive addresses from GLACIER_MNEMONIC
    glacier-tool derive [count]

    # Show the lock at a height (redeem script, P2SH address, key as WIF)
    glacier-tool lock <height>

    # Print the current chain tip height
    glacier-tool height

    # Run the full pipeline once and print the JSON report
    glacier-tool scan [count]
"""

from __future__ import annotations

import asyncio
import json
import sys

from glacier_wallet.config.settings import AppConfig
from glacier_wallet.errors.glacier_errors import GlacierError
from glacier_wallet.glacier.account import GlacierAccount
from glacier_wallet.glacier.models import LOCK_BRANCH


def _account(config: AppConfig) -> GlacierAccount:
    return GlacierAccount.from_mnemonic(
        config.mnemonic, config.network_params, passphrase=config.passphrase
    )


def _print_addresses(account: GlacierAccount, count: int) -> None:
    print(f"Receive addresses ({account.network.account_path}/0/i):")
    print("-" * 60)
    for i in range(count):
        print(f"  [{i}] {account.receive_address(i).address}")


def _cmd_generate(config: AppConfig) -> None:
    """Generate a new mnemonic and show the account it derives."""
    from mnemonic import Mnemonic

    words = Mnemonic("english").generate(strength=128)
    account = GlacierAccount.from_mnemonic(words, config.network_params)

    print("=" * 60)
    print(f"GLACIER WALLET ({config.network})")
    print("=" * 60)
    print()
    print(f"Mnemonic:  {words}")
    print(f"Account xpub: {account.xpub}")
    print()
    _print_addresses(account, 5)
    print()
    print("Export the mnemonic as GLACIER_MNEMONIC to serve this wallet.")


def _cmd_derive(config: AppConfig, count: int) -> None:
    account = _account(config)
    print(f"Account xpub: {account.xpub}")
    print()
    _print_addresses(account, count)


def _cmd_lock(config: AppConfig, lock_height: int) -> None:
    """Show the lock that matures at *lock_height*."""
    from glacier_wallet.btc.address import privkey_to_wif
    from glacier_wallet.glacier.codec import LockScriptCodec

    account = _account(config)
    codec = LockScriptCodec(config.network_params)
    descriptor = codec.describe_lock(lock_height, account.lock_pubkey_hash(lock_height))
    print(f"Lock height:   {descriptor.lock_height}")
    print(f"Key path:      {account.path(LOCK_BRANCH, lock_height)}")
    print(f"Redeem script: {descriptor.redeem_script.hex()}")
    print(f"P2SH address:  {descriptor.lock_address}")
    print(f"Marker script: {codec.build_lock_marker(lock_height).hex()}")
    wif = privkey_to_wif(account.lock_key(lock_height).key, config.network_params)
    print(f"Lock key WIF:  {wif}")


def _cmd_height(config: AppConfig) -> None:
    from glacier_wallet.chain.mempool.client import MempoolClient

    async def _run() -> None:
        chain = MempoolClient(config.explorer_url, timeout=config.chain.timeout)
        await chain.connect()
        try:
            print(await chain.get_current_height())
        finally:
            await chain.close()

    asyncio.run(_run())


def _cmd_scan(config: AppConfig, count: int) -> None:
    """Run the lock pipeline once without broadcasting."""
    from glacier_wallet.api.routes import report_response
    from glacier_wallet.chain.mempool.client import MempoolClient
    from glacier_wallet.glacier.service import GlacierService

    account = _account(config)

    async def _run() -> None:
        chain = MempoolClient(config.explorer_url, timeout=config.chain.timeout)
        await chain.connect()
        try:
            service = GlacierService.from_config(config, account, chain)
            report = await service.run(count)
        finally:
            await chain.close()
        print(json.dumps(report_response(report).model_dump(mode="json"), indent=2))

    asyncio.run(_run())


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(__doc__)
        sys.exit(1)

    cmd = args[0].lower()
    config = AppConfig()

    try:
        if cmd == "generate":
            _cmd_generate(config)
        elif cmd == "derive":
            _cmd_derive(config, int(args[1]) if len(args) > 1 else 5)
        elif cmd == "lock":
            if len(args) < 2:
                print("Usage: glacier-tool lock <height>")
                sys.exit(1)
            _cmd_lock(config, int(args[1]))
        elif cmd == "height":
            _cmd_height(config)
        elif cmd == "scan":
            _cmd_scan(config, int(args[1]) if len(args) > 1 else config.lock.default_scan_count)
        else:
            print(f"Unknown command: {cmd}")
            print(__doc__)
            sys.exit(1)
    except GlacierError as exc:
        print(f"Error ({exc.code}): {exc.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
