"""
tests/conftest.py

Shared fixtures: a pinned ledger clock, one attesting prover trusted by
every ledger, a fixed-supply bond ledger and a mint/burn cash ledger, and
one wallet per party per ledger.

    bond   "bond-2031"  asset 1, fixed supply 1,000,000, matures at MATURITY
    cash   "cash-usd"   asset 2, mint/burn, no maturity
"""

from typing import Dict

import pytest

from privatebonds import BondLedger, LedgerConfig, SupplyPolicy
from privatebonds.core.crypto import Ed25519KeyManager
from privatebonds.core.time import FixedClock
from privatebonds.verification.verifier import AttestationVerifier
from privatebonds.wallet import AttestingProver, ShieldedKeys, Wallet


OWNER = "issuer"
ALICE = "alice"
BOB   = "bob"
CAROL = "carol"

SUPPLY   = 1_000_000
MATURITY = 1_900_000_000
START    = MATURITY - 30 * 86_400


def make_ledger(
    address:  str,
    verifier: AttestationVerifier,
    clock:    FixedClock,
    **config,
) -> BondLedger:
    config.setdefault("tree_depth", 8)
    return BondLedger(
        config=   LedgerConfig(contract_address=address, **config),
        owner=    OWNER,
        verifier= verifier,
        clock=    clock,
    )


def wallets_for(ledger, keys, prover) -> Dict[str, Wallet]:
    return {
        address: Wallet(address, k, ledger, prover)
        for address, k in keys.items()
    }


def distribute(ledger, wallets, to: str, amount: int):
    transition = wallets[OWNER].build_transfer(wallets[to].recipient, amount)
    return ledger.distribute_or_issue(OWNER, to, transition)


def mint(ledger, wallets, to: str, amount: int):
    transition = wallets[OWNER].build_issue(amount, recipient=wallets[to].recipient)
    return ledger.distribute_or_issue(OWNER, to, transition)


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def prover():
    return AttestingProver(Ed25519KeyManager.generate())


@pytest.fixture
def verifier(prover):
    return AttestationVerifier(prover.public_key_hex)


@pytest.fixture
def keys():
    return {address: ShieldedKeys.generate() for address in (OWNER, ALICE, BOB, CAROL)}


@pytest.fixture
def bond(verifier, clock, keys, prover):
    """Fixed-supply bond, fully minted to the issuer, Alice and Bob whitelisted."""
    ledger = make_ledger("bond-2031", verifier, clock, asset_id=1)
    issuer = Wallet(OWNER, keys[OWNER], ledger, prover)
    genesis = issuer.build_issue(SUPPLY, maturity_date=MATURITY)
    ledger.initialize(OWNER, SUPPLY, MATURITY, genesis)
    ledger.add_to_whitelist(OWNER, ALICE)
    ledger.add_to_whitelist(OWNER, BOB)
    return ledger


@pytest.fixture
def bond_wallets(bond, keys, prover):
    return wallets_for(bond, keys, prover)


@pytest.fixture
def cash(verifier, clock, keys):
    """Mint/burn payment token with no maturity, Alice and Bob whitelisted."""
    ledger = make_ledger(
        "cash-usd", verifier, clock,
        asset_id=      2,
        supply_policy= SupplyPolicy.MINT_BURN,
    )
    ledger.initialize(OWNER, 0, 0)
    ledger.add_to_whitelist(OWNER, ALICE)
    ledger.add_to_whitelist(OWNER, BOB)
    return ledger


@pytest.fixture
def cash_wallets(cash, keys, prover):
    return wallets_for(cash, keys, prover)


@pytest.fixture
def funded(bond, bond_wallets):
    """Scenario 1 applied: issuer 200,000 / Alice 500,000 / Bob 300,000."""
    distribute(bond, bond_wallets, ALICE, 500_000)
    distribute(bond, bond_wallets, BOB, 300_000)
    return bond
