"""
Tests for the generation-versioned policy store.
"""

from cdrbac.policy import compile_policy, EMPTY_POLICY
from cdrbac.store import PolicyStore


class TestPolicyStore:
    """Test generation handling"""

    def test_initial_generation(self):
        store = PolicyStore()
        snapshot = store.current()
        assert snapshot.generation == 0
        assert snapshot.policy is EMPTY_POLICY
        assert store.generation == 0

    def test_swap_increments_generation(self):
        """Test each swap publishes the next generation"""
        store = PolicyStore()
        first = compile_policy(["p, role:a, applications, get, */*, allow"])
        second = compile_policy(["p, role:a, applications, get, */*, deny"])

        one = store.swap(first)
        two = store.swap(second)

        assert one.generation == 1
        assert two.generation == 2
        assert store.current() is two
        assert store.policy is second

    def test_old_snapshot_unchanged_after_swap(self):
        """Test a held snapshot is not affected by later swaps"""
        store = PolicyStore()
        first = compile_policy(["p, role:a, applications, get, */*, allow"])
        held = store.swap(first)

        store.swap(compile_policy(["p, role:b, clusters, get, *, allow"]))

        assert held.generation == 1
        assert held.policy is first
        assert held.policy.rules[0].role == "role:a"

    def test_history_is_bounded(self):
        store = PolicyStore(history_size=3)
        for index in range(5):
            store.swap(compile_policy([f"p, role:a, applications, action{index}, */*, allow"]))

        history = store.history()
        assert [entry['generation'] for entry in history] == [3, 4, 5]
        assert all(entry['rules'] == 1 for entry in history)
        assert history[-1]['digest'] == store.policy.digest
