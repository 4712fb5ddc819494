from app.models import Conversation, Customer, Message
from app.models.enums import ConversationStatus, Direction
from app.services.conversation_service import (
    add_message,
    get_latest_message,
    get_or_create_conversation,
    get_or_create_customer,
    update_conversation_status,
)

from conftest import make_tenant

PHONE = "+5491112345678"


class TestGetOrCreateCustomer:
    def test_creates_with_default_name(self, db_session):
        tenant = make_tenant(db_session)

        customer = get_or_create_customer(db_session, tenant.id, PHONE)

        assert customer.name == f"Cliente {PHONE}"
        assert customer.phone_number == PHONE

    def test_reuses_existing_customer(self, db_session):
        tenant = make_tenant(db_session)
        first = get_or_create_customer(db_session, tenant.id, PHONE, name="Ana")
        db_session.commit()

        second = get_or_create_customer(db_session, tenant.id, PHONE, name="Otro nombre")

        assert second.id == first.id
        assert second.name == "Ana"
        assert db_session.query(Customer).count() == 1

    def test_same_phone_in_other_tenant_is_a_new_customer(self, db_session):
        a = make_tenant(db_session, slug="a")
        b = make_tenant(db_session, slug="b")

        first = get_or_create_customer(db_session, a.id, PHONE)
        second = get_or_create_customer(db_session, b.id, PHONE)

        assert first.id != second.id


class TestGetOrCreateConversation:
    def test_reuses_open_conversation(self, db_session):
        tenant = make_tenant(db_session)
        customer = get_or_create_customer(db_session, tenant.id, PHONE)

        first = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")
        second = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")

        assert first.id == second.id

    def test_reuses_pending_conversation(self, db_session):
        tenant = make_tenant(db_session)
        customer = get_or_create_customer(db_session, tenant.id, PHONE)
        first = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")
        update_conversation_status(db_session, first, ConversationStatus.PENDING)

        second = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")

        assert second.id == first.id

    def test_closed_conversation_starts_a_new_one(self, db_session):
        tenant = make_tenant(db_session)
        customer = get_or_create_customer(db_session, tenant.id, PHONE)
        first = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")
        update_conversation_status(db_session, first, ConversationStatus.CLOSED)
        db_session.commit()

        second = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")

        assert second.id != first.id
        assert second.status == "OPEN"
        assert db_session.query(Conversation).count() == 2

    def test_channels_are_separate_threads(self, db_session):
        tenant = make_tenant(db_session)
        customer = get_or_create_customer(db_session, tenant.id, PHONE)

        chat = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")
        call = get_or_create_conversation(db_session, tenant.id, customer.id, "CALL")

        assert chat.id != call.id


class TestMessages:
    def test_add_and_fetch_latest(self, db_session):
        tenant = make_tenant(db_session)
        customer = get_or_create_customer(db_session, tenant.id, PHONE)
        conversation = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")

        add_message(db_session, conversation, channel="WHATSAPP", direction=Direction.INBOUND, text="primero")
        last = add_message(
            db_session,
            conversation,
            channel="WHATSAPP",
            direction=Direction.OUTBOUND,
            text="segundo",
            metadata={"autopilot": True},
        )
        db_session.commit()

        latest = get_latest_message(db_session, conversation.id)
        assert latest.id == last.id
        assert latest.direction == "OUTBOUND"
        assert latest.message_metadata == {"autopilot": True}

    def test_missing_text_is_stored_as_null(self, db_session):
        tenant = make_tenant(db_session)
        customer = get_or_create_customer(db_session, tenant.id, PHONE)
        conversation = get_or_create_conversation(db_session, tenant.id, customer.id, "WHATSAPP")

        message = add_message(db_session, conversation, channel="WHATSAPP", direction=Direction.INBOUND, text=None)
        db_session.commit()

        assert db_session.get(Message, message.id).text is None
