import json
import logging
from aiohttp import web
from pydantic import BaseModel, EmailStr, Field, ValidationError

from social.graze.userdb.app.config import DatabaseLifecycleAppKey
from social.graze.userdb.database.lifecycle import ConflictError, StorageError


logger = logging.getLogger(__name__)


class CreateUserOperation(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr


async def handle_create_user(request: web.Request) -> web.Response:
    lifecycle = request.app[DatabaseLifecycleAppKey]

    try:
        data = await request.read()
        create_user_operation = CreateUserOperation.model_validate_json(data)
    except ValidationError as e:
        return web.json_response(
            status=400,
            data={
                "success": False,
                "error": "Validation failed",
                "details": json.loads(e.json(include_url=False)),
            },
        )
    except OSError:
        return web.json_response(
            status=400, data={"success": False, "error": "Invalid JSON"}
        )

    try:
        user = await lifecycle.create_user(
            create_user_operation.username, str(create_user_operation.email)
        )
    except ConflictError:
        return web.json_response(
            status=409,
            data={
                "success": False,
                "error": "User already exists with this username or email",
            },
        )
    except StorageError:
        logger.exception("Error creating user")
        return web.json_response(
            status=500, data={"success": False, "error": "Internal server error"}
        )

    return web.json_response(status=201, data={"success": True, "data": user.to_dict()})


async def handle_list_users(request: web.Request) -> web.Response:
    lifecycle = request.app[DatabaseLifecycleAppKey]

    try:
        users = await lifecycle.list_users()
    except StorageError:
        logger.exception("Error fetching users")
        return web.json_response(
            status=500, data={"success": False, "error": "Internal server error"}
        )

    return web.json_response(
        {
            "success": True,
            "data": [user.to_dict() for user in users],
            "count": len(users),
        }
    )
