from typing import Annotated

from fastapi import Header, HTTPException
from pydantic import ValidationError

from syncledger.api.routers.http_errors import HTTP_422_UNPROCESSABLE
from syncledger.core.common.identity import Actor


def get_actor(
    actor_id: Annotated[
        str,
        Header(
            alias="X-Actor-Id",
            description="Actor identifier asserted by the upstream identity provider.",
            examples=["client_001"],
        ),
    ],
    actor_role: Annotated[
        str,
        Header(
            alias="X-Actor-Role",
            description="Actor role: client, producer or admin.",
            examples=["client"],
        ),
    ],
) -> Actor:
    try:
        return Actor(actor_id=actor_id.strip(), role=actor_role.strip().lower())
    except ValidationError as exc:
        raise HTTPException(status_code=HTTP_422_UNPROCESSABLE, detail="INVALID_ACTOR") from exc
