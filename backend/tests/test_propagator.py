"""
Tests for the realtime propagator, the in-process hub and the Redis transport.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import redis

from ordering_core.services import ServiceContext
from ordering_core.services.domain import OrderService
from ordering_core.services.events import BranchHub, RealtimePropagator
from ordering_core.services.permissions import Principal
from shared.infrastructure.correlation import correlation_id_var, correlation_scope
from shared.infrastructure.events import (
    INGREDIENT_AVAILABILITY_UPDATE,
    NEW_ORDER,
    ORDER_STATUS_UPDATE,
    RealtimeEvent,
    RedisTransport,
    branch_id_from_channel,
    channel_branch,
)
from shared.utils.exceptions import AuthenticationRequired, BranchAccessError


TIMESTAMP = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)


class FailingTransport:
    def publish(self, topic, event_name, payload):
        raise ConnectionError("transport down")


class TestPropagatorPayloads:
    """Tests for the fixed payload shapes."""

    def test_status_update_payload(self, propagator, transport):
        propagator.emit_status_update(
            order_id=7, order_number=123456, status="READY", branch_id=3, timestamp=TIMESTAMP
        )

        assert transport.events == [
            (
                "branch-3",
                ORDER_STATUS_UPDATE,
                {
                    "orderId": 7,
                    "orderNumber": 123456,
                    "status": "READY",
                    "branchId": 3,
                    "timestamp": "2026-10-19T12:30:00Z",
                },
            )
        ]

    def test_availability_payload(self, propagator, transport):
        propagator.emit_availability_update(11, 4, False, timestamp=TIMESTAMP)

        (topic, name, payload), = transport.events
        assert topic == "branch-4"
        assert name == INGREDIENT_AVAILABILITY_UPDATE
        assert payload == {
            "ingredientId": 11,
            "branchId": 4,
            "available": False,
            "timestamp": "2026-10-19T12:30:00Z",
        }

    def test_default_timestamp_is_utc(self, propagator, transport):
        propagator.emit_availability_update(11, 4, True)

        (_, _, payload), = transport.events
        assert datetime.fromisoformat(payload["timestamp"].replace("Z", "+00:00")).tzinfo is not None


class TestPropagatorFailures:
    """Emission failures never reach the caller."""

    def test_transport_failure_is_swallowed(self, caplog):
        propagator = RealtimePropagator(FailingTransport())

        with caplog.at_level(logging.ERROR, logger="ordering_core.realtime"):
            propagator.emit_status_update(1, 123456, "ACCEPTED", 1, timestamp=TIMESTAMP)

        assert any(r.getMessage() == "Realtime publish failed" for r in caplog.records)

    def test_transport_failure_does_not_undo_mutation(
        self, db_session, seed_branch, soda, admin
    ):
        """Should keep the committed order when every publish fails."""
        ctx = ServiceContext(db=db_session, propagator=RealtimePropagator(FailingTransport()))
        service = OrderService(ctx)

        order = service.create_order(seed_branch.id, "Ana", "123", [{"dish_id": soda.id, "qty": 1}], admin)
        updated = service.update_status(order.id, "ACCEPTED", admin)

        assert updated.status == "ACCEPTED"
        assert service.get_order(order.id, admin).status == "ACCEPTED"

    def test_invalid_branch_is_logged_not_raised(self, propagator, transport):
        propagator.emit_availability_update(1, 0, True)

        assert transport.events == []

    def test_invalid_payload_is_logged_not_raised(self, propagator, transport, caplog):
        """Should swallow a payload that fails validation after the mutation committed."""
        with caplog.at_level(logging.ERROR, logger="ordering_core.realtime"):
            propagator.emit_status_update(1, 123456, "SHIPPED", 3)

        assert transport.events == []
        assert any(r.getMessage() == "Realtime event could not be built" for r in caplog.records)

    def test_background_executor(self, transport):
        """Should publish from the executor and keep the correlation id."""
        seen_correlation = []

        class CorrelationRecordingTransport:
            def publish(self, topic, event_name, payload):
                seen_correlation.append(correlation_id_var.get())
                transport.publish(topic, event_name, payload)

        executor = ThreadPoolExecutor(max_workers=1)
        propagator = RealtimePropagator(CorrelationRecordingTransport(), executor=executor)

        with correlation_scope("req-42"):
            propagator.emit_status_update(1, 123456, "ACCEPTED", 2, timestamp=TIMESTAMP)
        propagator.close()

        assert len(transport.events) == 1
        assert seen_correlation == ["req-42"]

    def test_shut_down_executor_is_logged(self, transport):
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        propagator = RealtimePropagator(transport, executor=executor)

        propagator.emit_status_update(1, 123456, "ACCEPTED", 2)

        assert transport.events == []


class TestBranchHub:
    """Tests for the in-process per-branch hub."""

    def test_fan_out_only_to_branch(self):
        hub = BranchHub()
        received_a, received_b = [], []
        hub.subscribe(1, lambda name, payload: received_a.append((name, payload)))
        hub.subscribe(2, lambda name, payload: received_b.append((name, payload)))

        sent = hub.publish("branch-1", NEW_ORDER, {"orderId": 5})

        assert sent == 1
        assert received_a == [(NEW_ORDER, {"orderId": 5})]
        assert received_b == []

    def test_unsubscribe(self):
        hub = BranchHub()
        received = []
        subscription = hub.subscribe(1, lambda name, payload: received.append(name))

        subscription.unsubscribe()
        subscription.unsubscribe()
        hub.publish("branch-1", NEW_ORDER, {})

        assert received == []
        assert subscription.active is False
        assert hub.subscriber_count() == 0

    def test_context_manager(self):
        hub = BranchHub()
        with hub.subscribe(3, lambda name, payload: None) as subscription:
            assert subscription.topic == "branch-3"
            assert hub.subscriber_count(3) == 1
        assert hub.subscriber_count(3) == 0

    def test_failing_subscriber_dropped(self):
        """Should drop a subscriber whose callback raises and keep serving the others."""
        hub = BranchHub()
        received = []

        def broken(name, payload):
            raise RuntimeError("socket closed")

        broken_sub = hub.subscribe(1, broken)
        hub.subscribe(1, lambda name, payload: received.append(name))

        sent = hub.publish("branch-1", ORDER_STATUS_UPDATE, {})

        assert sent == 1
        assert received == [ORDER_STATUS_UPDATE]
        assert broken_sub.active is False
        assert hub.subscriber_count(1) == 1


class TestSubscribe:
    """Tests for guarded subscriptions through the propagator."""

    def test_branch_user_subscribes_to_own_branch(self):
        hub = BranchHub()
        propagator = RealtimePropagator(hub)
        received = []

        propagator.subscribe(
            Principal(role="BRANCH_USER", branch_id=1),
            1,
            lambda name, payload: received.append(payload),
        )
        propagator.emit_status_update(9, 123456, "ACCEPTED", 1, timestamp=TIMESTAMP)

        assert received[0]["orderId"] == 9

    def test_branch_user_denied_other_branch(self):
        propagator = RealtimePropagator(BranchHub())

        with pytest.raises(BranchAccessError):
            propagator.subscribe(Principal(role="BRANCH_USER", branch_id=1), 2, lambda n, p: None)

    def test_anonymous_denied(self):
        propagator = RealtimePropagator(BranchHub())

        with pytest.raises(AuthenticationRequired):
            propagator.subscribe(None, 2, lambda n, p: None)

    def test_transport_without_subscriptions(self, transport):
        propagator = RealtimePropagator(transport)

        with pytest.raises(TypeError):
            propagator.subscribe(Principal(role="ADMIN"), 2, lambda n, p: None)

    def test_end_to_end_order_events(self, db_session, seed_branch, soda, admin, branch_user):
        """Should deliver new-order and status updates to a dashboard subscriber."""
        hub = BranchHub()
        propagator = RealtimePropagator(hub)
        received = []
        propagator.subscribe(branch_user, seed_branch.id, lambda name, payload: received.append(name))
        service = OrderService(ServiceContext(db=db_session, propagator=propagator))

        order = service.create_order(seed_branch.id, "Ana", "123", [{"dish_id": soda.id, "qty": 1}], admin)
        service.cancel(order.id, "Changed mind", admin)

        assert received == [NEW_ORDER, ORDER_STATUS_UPDATE]


class TestRedisTransport:
    """Tests for the Redis pub/sub transport."""

    def test_publish_envelope(self):
        client = MagicMock(spec=redis.Redis)
        client.publish.return_value = 2
        transport = RedisTransport(client)

        receivers = transport.publish("branch-3", NEW_ORDER, {"orderId": 1})

        assert receivers == 2
        channel, message = client.publish.call_args.args
        assert channel == "branch-3"
        assert json.loads(message) == {"event": NEW_ORDER, "payload": {"orderId": 1}}

    def test_oversized_event_rejected(self):
        client = MagicMock(spec=redis.Redis)
        transport = RedisTransport(client)

        with pytest.raises(ValueError):
            transport.publish("branch-3", NEW_ORDER, {"blob": "x" * (70 * 1024)})

        client.publish.assert_not_called()

    def test_redis_error_swallowed_by_propagator(self):
        client = MagicMock(spec=redis.Redis)
        client.publish.side_effect = redis.ConnectionError("refused")
        propagator = RealtimePropagator(RedisTransport(client))

        propagator.emit_availability_update(1, 3, True)

        client.publish.assert_called_once()


class TestEventEnvelope:
    """Tests for topic naming and the wire envelope."""

    def test_channel_round_trip(self):
        assert channel_branch(12) == "branch-12"
        assert branch_id_from_channel("branch-12") == 12

    @pytest.mark.parametrize("bad", [0, -1, True])
    def test_channel_rejects_bad_ids(self, bad):
        with pytest.raises(ValueError):
            channel_branch(bad)

    def test_foreign_topic_rejected(self):
        with pytest.raises(ValueError):
            branch_id_from_channel("kitchen:1")

    def test_unknown_event_name_rejected(self):
        with pytest.raises(ValueError):
            RealtimeEvent(name="order-deleted", branch_id=1, payload={})

    def test_from_json(self):
        event = RealtimeEvent.from_json('{"event": "new-order", "payload": {"orderId": 3}}', 5)

        assert event == RealtimeEvent(name=NEW_ORDER, branch_id=5, payload={"orderId": 3})
