"""
tests/test_swap.py

Authorization witnesses and atomic two-leg settlement.

  AUTHWIT
    action hash binds consumer, chain, version, caller, function, arguments
    consume and cancel are mutually exclusive (scenario 5)
    duplicate creation, unknown authwit, mismatched recomputation

  SWAP
    delivery-versus-payment across two ledgers
    maturity redemption (redeem leg + payment leg)
    both legs on one ledger
    if either leg fails, neither ledger changes
"""

import threading

import pytest

from privatebonds import AuthwitStatus, SupplyPolicy, SwapLeg, SwapOrchestrator
from privatebonds.authwit.authwit import (
    authwit_args_hash,
    authwit_nullifier,
    compute_action_hash,
)
from privatebonds.core.exceptions import (
    AuthwitAlreadyConsumed,
    AuthwitMismatch,
    AuthwitNotFound,
    CommitmentTreeFull,
    DuplicateAuthwit,
    DuplicateNullifier,
    InvalidProof,
    NotMatured,
    NotWhitelisted,
    SchemaError,
)
from privatebonds.core.hashing import domain_hash
from privatebonds.core.models import Transition

from conftest import ALICE, BOB, MATURITY, OWNER, SUPPLY, make_ledger, mint, wallets_for


DESK = "swap-desk"


@pytest.fixture
def desk():
    return SwapOrchestrator(DESK)


@pytest.fixture
def market(funded, bond_wallets, cash, cash_wallets):
    """Bond holdings from scenario 1; Bob holds 1,000,000 cash, the issuer 500,000."""
    mint(cash, cash_wallets, BOB, 1_000_000)
    mint(cash, cash_wallets, OWNER, 500_000)
    return funded, cash


def authorize(desk, ledger, transition, principal, nonce, **leg):
    """Principal side: commit to the exact leg, then hand it to the desk."""
    action_hash = desk.action_hash_for(ledger, principal, transition, nonce)
    ledger.create_authwit(principal, action_hash, nonce)
    return SwapLeg(ledger, principal, transition, nonce, action_hash, **leg)


def transfer_leg(desk, ledger, wallets, principal, counterparty, amount, nonce):
    t = wallets[principal].build_transfer(wallets[counterparty].recipient, amount)
    return authorize(desk, ledger, t, principal, nonce, recipient=counterparty)


# ─────────────────────────────────────────────────────────────
# Action hash
# ─────────────────────────────────────────────────────────────

class TestActionHash:

    ARGS = domain_hash("args", 1)

    def base(self, **overrides):
        params = dict(
            consumer="bond-2031", chain_id=1, version=1,
            caller=DESK, function_name="transfer", args_hash=self.ARGS,
        )
        params.update(overrides)
        return compute_action_hash(**params)

    def test_deterministic(self):
        assert self.base() == self.base()

    @pytest.mark.parametrize("override", [
        {"consumer": "cash-usd"},
        {"chain_id": 2},
        {"version": 2},
        {"caller": "other-desk"},
        {"function_name": "redeem"},
        {"args_hash": domain_hash("args", 2)},
    ])
    def test_every_component_binds(self, override):
        assert self.base(**override) != self.base()

    def test_args_bind_transition_and_nonce(self, funded, bond_wallets):
        t = bond_wallets[ALICE].build_transfer(bond_wallets[BOB].recipient, 1)
        other = bond_wallets[ALICE].build_transfer(bond_wallets[BOB].recipient, 2)
        assert authwit_args_hash(ALICE, t, 1) != authwit_args_hash(ALICE, t, 2)
        assert authwit_args_hash(ALICE, t, 1) != authwit_args_hash(ALICE, other, 1)
        assert authwit_args_hash(ALICE, t, 1) != authwit_args_hash(BOB, t, 1)


# ─────────────────────────────────────────────────────────────
# Authwit lifecycle
# ─────────────────────────────────────────────────────────────

class TestAuthwitLifecycle:

    def test_create_records_and_emits(self, funded):
        h = domain_hash("action", 1)
        funded.create_authwit(ALICE, h, 7)
        assert funded.authwit_status(ALICE, h) == AuthwitStatus.CREATED
        assert funded.events("AuthwitCreated")[-1].payload == {
            "principal": ALICE, "action_hash": h, "nonce": 7,
        }

    def test_duplicate_create_rejected(self, funded):
        h = domain_hash("action", 1)
        funded.create_authwit(ALICE, h, 7)
        with pytest.raises(DuplicateAuthwit):
            funded.create_authwit(ALICE, h, 8)

    def test_malformed_action_hash_rejected(self, funded):
        with pytest.raises(SchemaError):
            funded.create_authwit(ALICE, "not-a-hash", 1)

    def test_cancel_publishes_nullifier(self, funded):
        h = domain_hash("action", 1)
        funded.create_authwit(ALICE, h, 7)
        funded.cancel_authwit(ALICE, h)
        assert funded.authwit_status(ALICE, h) == AuthwitStatus.CANCELLED
        assert funded.is_nullified(authwit_nullifier(ALICE, h))

    def test_cancel_twice_fails(self, funded):
        h = domain_hash("action", 1)
        funded.create_authwit(ALICE, h, 7)
        funded.cancel_authwit(ALICE, h)
        with pytest.raises(AuthwitAlreadyConsumed):
            funded.cancel_authwit(ALICE, h)

    def test_cancel_unknown_fails(self, funded):
        with pytest.raises(AuthwitNotFound):
            funded.cancel_authwit(ALICE, domain_hash("action", 9))

    def test_only_principal_can_cancel(self, funded):
        h = domain_hash("action", 1)
        funded.create_authwit(ALICE, h, 7)
        with pytest.raises(AuthwitNotFound):
            funded.cancel_authwit(BOB, h)
        assert funded.authwit_status(ALICE, h) == AuthwitStatus.CREATED

    def test_scenario_5_cancel_then_swap(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        bond.cancel_authwit(ALICE, leg_a.action_hash)
        bond_before, cash_before = bond.state.snapshot(), cash.state.snapshot()

        with pytest.raises(AuthwitAlreadyConsumed):
            desk.execute_swap(BOB, leg_a, leg_b)

        assert bond.state.snapshot() == bond_before
        assert cash.state.snapshot() == cash_before
        assert cash.authwit_status(BOB, leg_b.action_hash) == AuthwitStatus.CREATED
        assert bond_wallets[ALICE].balance() == 500_000

    def test_consume_then_cancel_fails(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        desk.execute_swap(BOB, leg_a, leg_b)

        with pytest.raises(DuplicateNullifier):
            bond.cancel_authwit(ALICE, leg_a.action_hash)
        assert bond.authwit_status(ALICE, leg_a.action_hash) == AuthwitStatus.CONSUMED

    def test_cancel_races_consume(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        outcomes = []

        def settle():
            try:
                desk.execute_swap(BOB, leg_a, leg_b)
                outcomes.append("consumed")
            except DuplicateNullifier:
                outcomes.append("lost")

        def cancel():
            try:
                bond.cancel_authwit(ALICE, leg_a.action_hash)
                outcomes.append("cancelled")
            except DuplicateNullifier:
                outcomes.append("lost")

        threads = [threading.Thread(target=settle), threading.Thread(target=cancel)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        assert sorted(outcomes) in (["consumed", "lost"], ["cancelled", "lost"])
        status = bond.authwit_status(ALICE, leg_a.action_hash)
        if "consumed" in outcomes:
            assert status == AuthwitStatus.CONSUMED
            assert bond_wallets[BOB].balance() == 400_000
        else:
            assert status == AuthwitStatus.CANCELLED
            assert bond_wallets[BOB].balance() == 300_000
            assert cash_wallets[ALICE].balance() == 0


# ─────────────────────────────────────────────────────────────
# Swap settlement
# ─────────────────────────────────────────────────────────────

class TestSwap:

    def test_delivery_versus_payment(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)

        applied_a, applied_b = desk.execute_swap(BOB, leg_a, leg_b)

        assert len(applied_a.nullifiers) == 3
        assert len(applied_b.nullifiers) == 3
        assert bond_wallets[ALICE].balance() == 400_000
        assert bond_wallets[BOB].balance() == 400_000
        assert cash_wallets[ALICE].balance() == 95_000
        assert cash_wallets[BOB].balance() == 905_000
        assert bond.authwit_status(ALICE, leg_a.action_hash) == AuthwitStatus.CONSUMED
        assert cash.authwit_status(BOB, leg_b.action_hash) == AuthwitStatus.CONSUMED
        assert bond.total_supply == SUPPLY
        assert cash.total_supply == 1_500_000

    def test_swap_cannot_be_replayed(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        desk.execute_swap(BOB, leg_a, leg_b)
        bond_before, cash_before = bond.state.snapshot(), cash.state.snapshot()

        with pytest.raises(AuthwitAlreadyConsumed):
            desk.execute_swap(BOB, leg_a, leg_b)
        assert bond.state.snapshot() == bond_before
        assert cash.state.snapshot() == cash_before

    def test_maturity_redemption(self, market, bond_wallets, cash_wallets, desk, clock):
        bond, cash = market
        clock.now = MATURITY
        redeem = bond_wallets[ALICE].build_redeem(500_000, current_timestamp=clock())
        leg_a = authorize(desk, bond, redeem, ALICE, 3, amount=500_000)
        leg_b = transfer_leg(desk, cash, cash_wallets, OWNER, ALICE, 500_000, nonce=3)

        applied_a, _ = desk.execute_swap(OWNER, leg_a, leg_b)

        assert applied_a.leaf_indices == []
        assert bond_wallets[ALICE].balance() == 0
        assert cash_wallets[ALICE].balance() == 500_000
        assert cash_wallets[OWNER].balance() == 0
        assert bond.total_supply == SUPPLY

    def test_redemption_before_maturity_changes_nothing(
        self, market, bond_wallets, cash_wallets, desk,
    ):
        bond, cash = market
        redeem = bond_wallets[ALICE].build_redeem(500_000, current_timestamp=MATURITY)
        leg_a = authorize(desk, bond, redeem, ALICE, 3, amount=500_000)
        leg_b = transfer_leg(desk, cash, cash_wallets, OWNER, ALICE, 500_000, nonce=3)
        bond_before, cash_before = bond.state.snapshot(), cash.state.snapshot()

        with pytest.raises(NotMatured):
            desk.execute_swap(OWNER, leg_a, leg_b)
        assert bond.state.snapshot() == bond_before
        assert cash.state.snapshot() == cash_before

    def test_both_legs_on_one_ledger(self, funded, bond_wallets, desk):
        leg_a = transfer_leg(desk, funded, bond_wallets, ALICE, BOB, 10_000, nonce=1)
        leg_b = transfer_leg(desk, funded, bond_wallets, BOB, ALICE, 4_000, nonce=1)
        desk.execute_swap(ALICE, leg_a, leg_b)
        assert bond_wallets[ALICE].balance() == 494_000
        assert bond_wallets[BOB].balance() == 306_000

    def test_same_note_in_both_legs_rejected(self, funded, bond_wallets, desk):
        leg_a = transfer_leg(desk, funded, bond_wallets, ALICE, BOB, 10_000, nonce=1)
        leg_b = transfer_leg(desk, funded, bond_wallets, ALICE, BOB, 20_000, nonce=2)
        before = funded.state.snapshot()
        with pytest.raises(DuplicateNullifier):
            desk.execute_swap(ALICE, leg_a, leg_b)
        assert funded.state.snapshot() == before


class TestSwapAtomicity:

    def test_invalid_payment_proof_changes_nothing(
        self, market, bond_wallets, cash_wallets, desk,
    ):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        good = cash_wallets[BOB].build_transfer(cash_wallets[ALICE].recipient, 95_000)
        forged = Transition(good.kind, good.public_inputs, "A" * 86, good.note_ciphertexts)
        leg_b = authorize(desk, cash, forged, BOB, 1, recipient=ALICE)
        bond_before, cash_before = bond.state.snapshot(), cash.state.snapshot()

        with pytest.raises(InvalidProof):
            desk.execute_swap(BOB, leg_a, leg_b)

        assert bond.state.snapshot() == bond_before
        assert cash.state.snapshot() == cash_before
        assert bond.authwit_status(ALICE, leg_a.action_hash) == AuthwitStatus.CREATED

    def test_non_whitelisted_payment_recipient_changes_nothing(
        self, market, bond_wallets, cash_wallets, desk,
    ):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        cash.remove_from_whitelist(OWNER, ALICE)
        bond_before, cash_before = bond.state.snapshot(), cash.state.snapshot()

        with pytest.raises(NotWhitelisted):
            desk.execute_swap(BOB, leg_a, leg_b)

        assert bond.state.snapshot() == bond_before
        assert cash.state.snapshot() == cash_before

    def test_failed_swap_can_be_retried(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        cash.remove_from_whitelist(OWNER, ALICE)
        with pytest.raises(NotWhitelisted):
            desk.execute_swap(BOB, leg_a, leg_b)

        cash.add_to_whitelist(OWNER, ALICE)
        desk.execute_swap(BOB, leg_a, leg_b)
        assert cash_wallets[ALICE].balance() == 95_000

    def test_payment_ledger_without_room_changes_nothing(
        self, funded, bond_wallets, verifier, clock, keys, prover, desk,
    ):
        bond = funded
        cash = make_ledger(
            "cash-small", verifier, clock,
            asset_id=      2,
            supply_policy= SupplyPolicy.MINT_BURN,
            tree_depth=    2,
        )
        cash.initialize(OWNER, 0, 0)
        cash.add_to_whitelist(OWNER, ALICE)
        cash.add_to_whitelist(OWNER, BOB)
        cash_wallets = wallets_for(cash, keys, prover)
        mint(cash, cash_wallets, BOB, 1_000_000)
        mint(cash, cash_wallets, OWNER, 1)
        mint(cash, cash_wallets, OWNER, 2)

        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        bond_before, cash_before = bond.state.snapshot(), cash.state.snapshot()
        bond_events, cash_events = len(bond.events()), len(cash.events())

        with pytest.raises(CommitmentTreeFull):
            desk.execute_swap(BOB, leg_a, leg_b)

        assert bond.state.snapshot() == bond_before
        assert cash.state.snapshot() == cash_before
        assert (len(bond.events()), len(cash.events())) == (bond_events, cash_events)
        assert bond_wallets[ALICE].balance() == 500_000
        assert cash_wallets[BOB].balance() == 1_000_000
        assert bond.authwit_status(ALICE, leg_a.action_hash) == AuthwitStatus.CREATED
        assert cash.authwit_status(BOB, leg_b.action_hash) == AuthwitStatus.CREATED


class TestAuthwitVerification:

    def test_wrong_nonce_is_mismatch(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        tampered = SwapLeg(bond, ALICE, leg_a.transition, 2, leg_a.action_hash, recipient=BOB)
        with pytest.raises(AuthwitMismatch):
            desk.execute_swap(BOB, tampered, leg_b)

    def test_substituted_transition_is_mismatch(
        self, market, bond_wallets, cash_wallets, desk,
    ):
        bond, cash = market
        leg_a = transfer_leg(desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        cheaper = cash_wallets[BOB].build_transfer(cash_wallets[ALICE].recipient, 1_000)
        swapped = SwapLeg(cash, BOB, cheaper, 1, leg_b.action_hash, recipient=ALICE)
        before = cash.state.snapshot()

        with pytest.raises(AuthwitMismatch):
            desk.execute_swap(BOB, leg_a, swapped)
        assert cash.state.snapshot() == before

    def test_authwit_for_other_caller_is_mismatch(
        self, market, bond_wallets, cash_wallets, desk,
    ):
        bond, cash = market
        other_desk = SwapOrchestrator("other-desk")
        leg_a = transfer_leg(other_desk, bond, bond_wallets, ALICE, BOB, 100_000, nonce=1)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        with pytest.raises(AuthwitMismatch):
            desk.execute_swap(BOB, leg_a, leg_b)

    def test_missing_authwit(self, market, bond_wallets, cash_wallets, desk):
        bond, cash = market
        t = bond_wallets[ALICE].build_transfer(bond_wallets[BOB].recipient, 100_000)
        h = desk.action_hash_for(bond, ALICE, t, 1)
        leg_a = SwapLeg(bond, ALICE, t, 1, h, recipient=BOB)
        leg_b = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 95_000, nonce=1)
        with pytest.raises(AuthwitNotFound):
            desk.execute_swap(BOB, leg_a, leg_b)

    def test_issue_leg_rejected(self, market, cash_wallets, desk):
        _, cash = market
        issue = cash_wallets[OWNER].build_issue(10)
        leg = authorize(desk, cash, issue, OWNER, 1)
        other = transfer_leg(desk, cash, cash_wallets, BOB, ALICE, 5, nonce=1)
        with pytest.raises(SchemaError):
            desk.execute_swap(OWNER, leg, other)
