# chat_relay/interactors/message_interactor.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from chat_relay.domain.entities import ConversationRef, ConversationType
from chat_relay.domain.errors import QueryFailure, SendFailure
from chat_relay.domain.events import MessageCreated
from chat_relay.gateways.interfaces import IMessageGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher


class MessageInteractor:
    def __init__(
        self,
        message_gateway: IMessageGateway,
        event_dispatcher: EventDispatcher,
        logger: logging.Logger,
    ):
        self.message_gateway = message_gateway
        self.event_dispatcher = event_dispatcher
        self.logger = logger

    async def get_history(
        self, user_id: str, ref: ConversationRef
    ) -> list[schemas.Message]:
        try:
            if ref.type is ConversationType.GROUP:
                messages = await self.message_gateway.get_group_history(ref.target_id)
            else:
                messages = await self.message_gateway.get_direct_history(
                    user_id, ref.target_id
                )
        except SQLAlchemyError as e:
            self.logger.error(f"History fetch for {ref} failed: {e!s}")
            raise QueryFailure(f"Could not load {ref.type.value} conversation") from e
        return [schemas.Message.model_validate(message._model) for message in messages]

    async def send_message(
        self, message: schemas.MessageCreate, sender_id: str
    ) -> schemas.Message:
        try:
            created = await self.message_gateway.create_message(message, sender_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Message insert by {sender_id} failed: {e!s}")
            raise SendFailure("Failed to send message") from e

        sent = schemas.Message.model_validate(created._model)
        await self.event_dispatcher.dispatch_committed(
            MessageCreated(**sent.model_dump(exclude={"sender"}))
        )
        return sent
