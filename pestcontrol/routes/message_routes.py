import json
import logging
from datetime import datetime

import jwt
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from pestcontrol.auth import jwt_handler
from pestcontrol.auth.dependencies import get_current_user
from pestcontrol.chat.manager import manager
from pestcontrol import database
from pestcontrol.database import get_db
from pestcontrol.models.customer import Customer
from pestcontrol.models.message import Message
from pestcontrol.routes.common import database_unavailable, ensure_database_ready
from pestcontrol.scheduling import availability

logger = logging.getLogger(__name__)

router = APIRouter(tags=['messages'])
ws_router = APIRouter(tags=['chat'])

MAX_MESSAGE_LENGTH = 2000


class CreateMessageRequest(BaseModel):
    customer_id: int
    content: str
    from_customer: bool = False
    timestamp: datetime | None = None

    @field_validator('content')
    @classmethod
    def validate_content(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Message content is required.')
        if len(normalized) > MAX_MESSAGE_LENGTH:
            raise ValueError(f'Messages must be {MAX_MESSAGE_LENGTH} characters or fewer.')
        return normalized


class MessageResponse(BaseModel):
    id: int
    customer_id: int
    content: str
    from_customer: bool
    timestamp: datetime

    class Config:
        from_attributes = True


@router.get('/{customer_id}', response_model=list[MessageResponse], dependencies=[Depends(get_current_user)])
def list_messages(customer_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Message).filter(
            Message.customer_id == customer_id,
        ).order_by(Message.timestamp.asc(), Message.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def save_message(data: CreateMessageRequest) -> MessageResponse | None:
    """Persist a chat message; returns None when the customer does not exist."""
    db = database.SessionLocal()
    try:
        if db.get(Customer, data.customer_id) is None:
            return None
        message = Message(
            customer_id=data.customer_id,
            content=data.content,
            from_customer=data.from_customer,
            timestamp=data.timestamp or availability.business_now(),
        )
        db.add(message)
        db.commit()
        db.refresh(message)
        return MessageResponse.model_validate(message)
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()


def _is_valid_token(token: str | None) -> bool:
    if not token:
        return False
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError:
        return False
    return bool(payload.get('sub'))


@ws_router.websocket('/ws')
async def chat_socket(websocket: WebSocket, token: str | None = Query(default=None)):
    if not _is_valid_token(token):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = CreateMessageRequest.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning('Dropped invalid chat frame: %s', exc)
                continue

            try:
                saved = await run_in_threadpool(save_message, data)
            except SQLAlchemyError:
                logger.exception('Failed to store chat message for customer %s', data.customer_id)
                continue

            if saved is None:
                logger.warning('Dropped chat message for unknown customer %s', data.customer_id)
                continue

            await manager.broadcast(saved.model_dump(mode='json'))
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
