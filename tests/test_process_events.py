from order_lifecycle.domain.models import OrderStatus
from order_lifecycle.application.process_outbox import ProcessOutboxEventsUseCase
from order_lifecycle.application.process_inbox import ProcessInboxEventsUseCase
from order_lifecycle.presentation.shipping_consumer import handle_shipment_event

from conftest import FakePublisher, run


def test_outbox_publishes_order_paid(services, uow, store):
    order = run(services.new_order())
    run(services.pay_order(order.id, "30.00"))
    publisher = FakePublisher()

    published = run(ProcessOutboxEventsUseCase(uow, publisher)(limit=5))

    assert published == 1
    assert publisher.published == [{"order_id": order.id, "product_id": "widget", "quantity": 3}]
    assert store.outbox[0]["status"] == "published"
    # повторный запуск ничего не публикует
    assert run(ProcessOutboxEventsUseCase(uow, publisher)(limit=5)) == 0


def test_outbox_keeps_event_pending_when_publish_fails(services, uow, store):
    order = run(services.new_order())
    run(services.pay_order(order.id, "30.00"))

    published = run(ProcessOutboxEventsUseCase(uow, FakePublisher(succeed=False))())

    assert published == 0
    assert store.outbox[0]["status"] == "pending"


def test_shipment_event_is_stored_once(uow, store):
    event = {"event_type": "order.delivered", "order_id": "order-1"}
    run(handle_shipment_event(event, unit_of_work=uow))
    run(handle_shipment_event(event, unit_of_work=uow))

    assert len(store.inbox) == 1
    assert store.inbox[0]["idempotency_key"] == "order.delivered_order-1"


def test_inbox_confirms_delivery(services, uow, store):
    order = run(services.new_order())
    run(services.pay_order(order.id, "30.00"))
    run(handle_shipment_event({"event_type": "order.delivered", "order_id": order.id}, unit_of_work=uow))

    processed = run(ProcessInboxEventsUseCase(uow, services.deliver)())

    assert processed == 1
    assert store.orders[order.id].status == OrderStatus.DELIVERED
    assert store.inbox[0]["status"] == "processed"


def test_inbox_rejects_delivery_of_unpaid_order(services, uow, store):
    order = run(services.new_order())
    run(handle_shipment_event({"event_type": "order.delivered", "order_id": order.id}, unit_of_work=uow))
    run(handle_shipment_event({"event_type": "order.delivered", "order_id": "missing"}, unit_of_work=uow))
    run(handle_shipment_event({"event_type": "order.returned", "order_id": order.id}, unit_of_work=uow))

    processed = run(ProcessInboxEventsUseCase(uow, services.deliver)())

    assert processed == 0
    assert [row["status"] for row in store.inbox] == ["failed", "failed", "failed"]
    assert store.orders[order.id].status == OrderStatus.CREATED


def test_inbox_without_pending_events(services, uow):
    assert run(ProcessInboxEventsUseCase(uow, services.deliver)()) == 0
