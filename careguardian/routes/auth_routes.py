from fastapi import APIRouter, Depends

from careguardian.auth.dependencies import get_current_actor
from careguardian.scheduling.policy import Actor

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(actor: Actor = Depends(get_current_actor)):
    return {"id": actor.id, "role": actor.role.value, "doctor_id": actor.doctor_id}
