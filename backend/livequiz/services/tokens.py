"""Signed participant tokens.

Issued when someone joins a session and presented with every answer and
participant socket join, so a participant can only act as themselves.
"""

from typing import Optional

from flask import current_app
from itsdangerous import BadSignature, URLSafeTimedSerializer

PARTICIPANT_SALT = 'participant-token'


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'])


def issue_participant_token(participant) -> str:
    return _serializer().dumps(
        {'participant_id': participant.id, 'session_id': participant.session_id},
        salt=PARTICIPANT_SALT,
    )


def read_participant_token(token) -> Optional[dict]:
    """Return the token payload, or None if it is missing, forged or expired."""
    if not isinstance(token, str) or not token:
        return None
    try:
        payload = _serializer().loads(
            token,
            salt=PARTICIPANT_SALT,
            max_age=current_app.config.get('PARTICIPANT_TOKEN_MAX_AGE'),
        )
    except BadSignature:  # covers SignatureExpired
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get('participant_id'), int):
        return None
    return payload
