"""Tests for the in-process membership backend — proves proofs are bound and single-use."""

import dataclasses

import pytest

from claimgate.errors import MembershipBackendError
from claimgate.membership.local_backend import (
    DEFAULT_ROOT_HISTORY_DURATION_S,
    FullProof,
    Identity,
    LocalMembershipBackend,
    generate_proof,
    new_group_tree,
)

from conftest import FakeClock


GROUP = 77
DEPTH = 16
EXTERNAL_NULLIFIER = 424242


@pytest.fixture
def backend(clock: FakeClock) -> LocalMembershipBackend:
    backend = LocalMembershipBackend(clock=clock)
    backend.create_group(GROUP, DEPTH, "0x" + "00" * 20)
    return backend


@pytest.fixture
def alice() -> Identity:
    return Identity(trapdoor=111, nullifier=222)


@pytest.fixture
def bob() -> Identity:
    return Identity(trapdoor=333, nullifier=444)


def _proof(backend: LocalMembershipBackend, identity: Identity, signal: int = 1) -> FullProof:
    tree = new_group_tree(GROUP, DEPTH)
    for member in backend.group_members(GROUP):
        tree.insert(member)
    return generate_proof(identity, tree, EXTERNAL_NULLIFIER, signal)


def _verify(backend: LocalMembershipBackend, proof: FullProof, group: int = GROUP) -> bool:
    return backend.verify_proof(
        group,
        proof.merkle_root,
        proof.signal,
        proof.nullifier_hash,
        proof.external_nullifier,
        proof.proof,
    )


class TestIdentity:
    def test_generated_identities_differ(self) -> None:
        a, b = Identity.generate(), Identity.generate()
        assert a.commitment != b.commitment

    def test_commitment_deterministic(self, alice: Identity) -> None:
        assert alice.commitment == Identity(trapdoor=111, nullifier=222).commitment

    def test_proof_for_non_member_fails(self, alice: Identity) -> None:
        with pytest.raises(ValueError, match="not a member"):
            generate_proof(alice, new_group_tree(GROUP, DEPTH), 1, 1)


class TestGroups:
    def test_duplicate_group(self, backend: LocalMembershipBackend) -> None:
        with pytest.raises(MembershipBackendError, match="already"):
            backend.create_group(GROUP, DEPTH, "0x" + "00" * 20)

    def test_unknown_group_add(self, backend: LocalMembershipBackend) -> None:
        with pytest.raises(MembershipBackendError, match="not provisioned"):
            backend.add_member(1, 5)

    def test_out_of_field_member(self, backend: LocalMembershipBackend) -> None:
        with pytest.raises(MembershipBackendError, match="Cannot add member"):
            backend.add_member(GROUP, -1)

    def test_root_tracks_members(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        empty = backend.group_root(GROUP)
        assert empty == new_group_tree(GROUP, DEPTH).root
        backend.add_member(GROUP, alice.commitment)
        assert backend.group_root(GROUP) != empty
        assert backend.group_members(GROUP) == [alice.commitment]


class TestVerifyProof:
    def test_valid_proof(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        assert _verify(backend, _proof(backend, alice))

    def test_replay_rejected(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = _proof(backend, alice)
        assert _verify(backend, proof)
        assert not _verify(backend, proof)

    def test_new_signal_same_nullifier_rejected(
        self, backend: LocalMembershipBackend, alice: Identity
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        assert _verify(backend, _proof(backend, alice, signal=1))
        assert not _verify(backend, _proof(backend, alice, signal=2))

    def test_other_members_unaffected_by_spend(
        self, backend: LocalMembershipBackend, alice: Identity, bob: Identity
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        backend.add_member(GROUP, bob.commitment)
        assert _verify(backend, _proof(backend, alice))
        assert _verify(backend, _proof(backend, bob))

    def test_unknown_group(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        assert not _verify(backend, _proof(backend, alice), group=GROUP + 1)

    def test_recent_root_accepted(
        self, backend: LocalMembershipBackend, alice: Identity, bob: Identity, clock: FakeClock
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        stale = _proof(backend, alice)
        backend.add_member(GROUP, bob.commitment)
        clock.advance(DEFAULT_ROOT_HISTORY_DURATION_S - 1)
        assert _verify(backend, stale)

    def test_expired_root_rejected(
        self, backend: LocalMembershipBackend, alice: Identity, bob: Identity, clock: FakeClock
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        stale = _proof(backend, alice)
        backend.add_member(GROUP, bob.commitment)
        clock.advance(DEFAULT_ROOT_HISTORY_DURATION_S + 1)
        assert not _verify(backend, stale)
        assert _verify(backend, _proof(backend, alice))

    def test_root_stamped_with_given_time(
        self, backend: LocalMembershipBackend, alice: Identity, bob: Identity, clock: FakeClock
    ) -> None:
        long_ago = clock().timestamp() - 2 * DEFAULT_ROOT_HISTORY_DURATION_S
        backend.add_member(GROUP, alice.commitment, created_s=long_ago)
        stale = _proof(backend, alice)
        backend.add_member(GROUP, bob.commitment, created_s=long_ago)
        assert not _verify(backend, stale)

    def test_current_root_never_expires(
        self, backend: LocalMembershipBackend, alice: Identity, clock: FakeClock
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        clock.advance(10 * DEFAULT_ROOT_HISTORY_DURATION_S)
        assert _verify(backend, _proof(backend, alice))

    def test_unknown_root(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = dataclasses.replace(_proof(backend, alice), merkle_root=12345)
        assert not _verify(backend, proof)

    def test_signal_mismatch(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = dataclasses.replace(_proof(backend, alice, signal=1), signal=2)
        assert not _verify(backend, proof)

    def test_external_nullifier_mismatch(
        self, backend: LocalMembershipBackend, alice: Identity
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = dataclasses.replace(_proof(backend, alice), external_nullifier=1)
        assert not _verify(backend, proof)

    def test_non_member_identity(
        self, backend: LocalMembershipBackend, alice: Identity, bob: Identity
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = _proof(backend, alice)
        forged = dataclasses.replace(
            proof,
            proof=dataclasses.replace(
                proof.proof,
                identity_nullifier=bob.nullifier,
                identity_trapdoor=bob.trapdoor,
            ),
        )
        assert not _verify(backend, forged)

    def test_wrong_proof_type(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = _proof(backend, alice)
        assert not backend.verify_proof(
            GROUP, proof.merkle_root, proof.signal, proof.nullifier_hash,
            proof.external_nullifier, [0] * 8,
        )

    def test_short_path(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = _proof(backend, alice)
        short = dataclasses.replace(
            proof,
            proof=dataclasses.replace(
                proof.proof,
                siblings=proof.proof.siblings[:-1],
                path_indices=proof.proof.path_indices[:-1],
            ),
        )
        assert not _verify(backend, short)

    def test_out_of_range_signal(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = dataclasses.replace(_proof(backend, alice), signal=2 ** 256)
        assert not _verify(backend, proof)

    def test_rejected_proof_does_not_spend(
        self, backend: LocalMembershipBackend, alice: Identity
    ) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = _proof(backend, alice, signal=1)
        assert not _verify(backend, dataclasses.replace(proof, signal=2))
        assert _verify(backend, proof)

    def test_mark_nullifier_spent(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = _proof(backend, alice)
        backend.mark_nullifier_spent(GROUP, proof.nullifier_hash)
        assert not _verify(backend, proof)


class TestProofSerialisation:
    def test_full_proof_dict(self, backend: LocalMembershipBackend, alice: Identity) -> None:
        backend.add_member(GROUP, alice.commitment)
        proof = _proof(backend, alice, signal=2 ** 200)
        data = proof.to_dict()
        assert data["signal"] == str(2 ** 200)
        assert FullProof.from_dict(data) == proof
