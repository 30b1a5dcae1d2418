"""
Configure generic models not specific
to a particular feature.
"""

from sqlmodel import SQLModel


class MessageResponse(SQLModel):
    """Plain acknowledgement returned by endpoints without a resource body"""
    message: str
