"""Self-demotion guard tests."""

import pytest

from habit_tracker.admin.guards import assert_not_self_demotion
from habit_tracker.errors import BadRequestError


class TestSelfDemotionGuard:
    def test_self_demotion_rejected(self):
        with pytest.raises(BadRequestError, match="cannot remove your own admin privileges"):
            assert_not_self_demotion("a1", "a1", False)

    def test_self_promotion_allowed(self):
        assert_not_self_demotion("a1", "a1", True)

    def test_demoting_someone_else_allowed(self):
        assert_not_self_demotion("a1", "u2", False)

    def test_error_maps_to_400(self):
        with pytest.raises(BadRequestError) as exc_info:
            assert_not_self_demotion("a1", "a1", False)
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "BAD_REQUEST"
