from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from .db import Base
import uuid

def uid() -> str:
    return str(uuid.uuid4())

class Conversation(Base):
    __tablename__ = "conversations"
    id = Column(String, primary_key=True, default=uid)
    phase = Column(String, default="upload")  # upload|job-description|questions|suggestions|generate
    state = Column(SQLiteJSON)  # ConversationState snapshot (camelCase JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class AIInteraction(Base):
    __tablename__ = "ai_interactions"
    id = Column(String, primary_key=True, default=uid)
    conversation_id = Column(String, index=True, nullable=True)
    interaction_type = Column(String)  # initial_questions|clarifying_questions|followup_questions|suggestions|final_resume
    provider = Column(String)
    model_used = Column(String)
    prompt = Column(Text)
    response = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
