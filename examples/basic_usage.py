"""
privatebonds: Basic Usage Example

Demonstrates:
- Bond and cash ledgers with opposite supply policies
- Primary distribution from the issuer
- Delivery-versus-payment through the swap orchestrator
- Redemption at maturity, paid in cash
- Verifying the public event log
"""

import logging

from privatebonds import BondLedger, LedgerConfig, SupplyPolicy, SwapLeg, SwapOrchestrator
from privatebonds.core.crypto import Ed25519KeyManager
from privatebonds.core.time import FixedClock
from privatebonds.verification.verifier import AttestationVerifier
from privatebonds.wallet import AttestingProver, ShieldedKeys, Wallet


MATURITY = 1_900_000_000


def authorize(desk, ledger, principal, transition, nonce, **leg):
    action_hash = desk.action_hash_for(ledger, principal, transition, nonce)
    ledger.create_authwit(principal, action_hash, nonce)
    return SwapLeg(ledger, principal, transition, nonce, action_hash, **leg)


def main():
    """End-to-end bond lifecycle."""
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("=" * 60)
    print("privatebonds: Basic Usage Example")
    print("=" * 60)
    print()

    # 1️⃣ Ledgers
    print("1️⃣ Creating bond and cash ledgers...")
    clock    = FixedClock(MATURITY - 86_400)
    prover   = AttestingProver(Ed25519KeyManager.generate())
    verifier = AttestationVerifier(prover.public_key_hex)
    sequencer = Ed25519KeyManager.generate()

    bond = BondLedger(
        LedgerConfig(contract_address="bond-2031", asset_id=1),
        owner="issuer", verifier=verifier, clock=clock, key_manager=sequencer,
    )
    cash = BondLedger(
        LedgerConfig(contract_address="cash-usd", asset_id=2,
                     supply_policy=SupplyPolicy.MINT_BURN),
        owner="issuer", verifier=verifier, clock=clock, key_manager=sequencer,
    )
    keys = {name: ShieldedKeys.generate() for name in ("issuer", "alice", "bob")}
    bw = {n: Wallet(n, k, bond, prover) for n, k in keys.items()}
    cw = {n: Wallet(n, k, cash, prover) for n, k in keys.items()}

    bond.initialize("issuer", 1_000_000, MATURITY,
                    bw["issuer"].build_issue(1_000_000, maturity_date=MATURITY))
    cash.initialize("issuer", 0, 0)
    for ledger in (bond, cash):
        ledger.add_to_whitelist("issuer", "alice")
        ledger.add_to_whitelist("issuer", "bob")
    print(f"✅ {bond}")
    print(f"✅ {cash}")
    print()

    # 2️⃣ Distribution
    print("2️⃣ Distributing bonds, minting cash...")
    bond.distribute_or_issue(
        "issuer", "alice", bw["issuer"].build_transfer(bw["alice"].recipient, 500_000),
    )
    cash.distribute_or_issue(
        "issuer", "bob", cw["issuer"].build_issue(600_000, recipient=cw["bob"].recipient),
    )
    cash.distribute_or_issue(
        "issuer", "issuer", cw["issuer"].build_issue(200_000),
    )
    print(f"  alice bonds: {bw['alice'].balance():,}   bob cash: {cw['bob'].balance():,}")
    print()

    # 3️⃣ Delivery versus payment
    print("3️⃣ Alice sells 200,000 bonds to Bob for 190,000 cash...")
    desk = SwapOrchestrator("dvp-desk")
    leg_a = authorize(desk, bond, "alice",
                      bw["alice"].build_transfer(bw["bob"].recipient, 200_000), 1,
                      recipient="bob")
    leg_b = authorize(desk, cash, "bob",
                      cw["bob"].build_transfer(cw["alice"].recipient, 190_000), 1,
                      recipient="alice")
    desk.execute_swap("bob", leg_a, leg_b)
    print(f"  alice bonds: {bw['alice'].balance():,}   alice cash: {cw['alice'].balance():,}")
    print(f"  bob   bonds: {bw['bob'].balance():,}   bob   cash: {cw['bob'].balance():,}")
    print()

    # 4️⃣ Maturity redemption
    print("4️⃣ Maturity: Bob redeems 200,000 bonds for cash...")
    clock.now = MATURITY
    leg_a = authorize(desk, bond, "bob",
                      bw["bob"].build_redeem(200_000, current_timestamp=clock()), 2,
                      amount=200_000)
    leg_b = authorize(desk, cash, "issuer",
                      cw["issuer"].build_transfer(cw["bob"].recipient, 200_000), 2,
                      recipient="bob")
    desk.execute_swap("issuer", leg_a, leg_b)
    print(f"  bob bonds: {bw['bob'].balance():,}   bob cash: {cw['bob'].balance():,}")
    print()

    # 5️⃣ Public log
    print("5️⃣ Verifying public event logs...")
    for ledger in (bond, cash):
        report = ledger.event_log.verify()
        status = "VALID" if report.valid else "INVALID"
        print(f"  {ledger.config.contract_address}: {report.total_events} events, {status}")
    print()
    print("=" * 60)


if __name__ == "__main__":
    main()
