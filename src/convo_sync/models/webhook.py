"""
Reply webhook payloads — request envelope and expected response shape.
"""

from pydantic import BaseModel, ConfigDict, Field


class WebhookAction(BaseModel):
    name: str = "sendMessage"


class WebhookInput(BaseModel):
    chat_id: str
    message: str


class SessionVariables(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: str = Field(default="user", alias="x-hasura-role")
    user_id: str = Field(alias="x-hasura-user-id")


class WebhookRequest(BaseModel):
    action: WebhookAction = WebhookAction()
    input: WebhookInput
    session_variables: SessionVariables


class WebhookResponse(BaseModel):
    """Only `response` is read; anything else the service sends is ignored."""

    response: str
