"""Class / section management."""
from fastapi import APIRouter

from eduportal.api.deps import CurrentUser, StaffOnly
from eduportal.models.school_class import SchoolClass, SchoolClassCreate, SchoolClassUpdate
from eduportal.models.user import UserOut
from eduportal.services import classes

router = APIRouter()


def serialize_class(school_class: SchoolClass) -> dict:
    return {
        "id": str(school_class.id),
        "class_name": school_class.class_name,
        "description": school_class.description,
        "year": school_class.year,
        "created_by": school_class.created_by,
        "is_active": school_class.is_active,
        "created_at": school_class.created_at.isoformat(),
    }


@router.get("/")
async def list_classes(user: CurrentUser, mine: bool = False):
    """Active classes (students pick theirs at sign-up); `mine` lists the caller's own."""
    if mine:
        items = await classes.list_classes_by_staff(str(user.id))
    else:
        items = await classes.list_classes()
    return [serialize_class(c) for c in items]


@router.post("/", status_code=201)
async def create_class(data: SchoolClassCreate, user: StaffOnly):
    return serialize_class(await classes.create_class(data, str(user.id)))


@router.patch("/{class_id}")
async def update_class(class_id: str, data: SchoolClassUpdate, user: StaffOnly):
    return serialize_class(await classes.update_class(class_id, data))


@router.delete("/{class_id}", status_code=204)
async def delete_class(class_id: str, user: StaffOnly):
    await classes.delete_class(class_id)


@router.get("/{class_name}/students", response_model=list[UserOut])
async def class_students(class_name: str, user: StaffOnly):
    return [UserOut.from_user(s) for s in await classes.get_class_students(class_name)]


@router.get("/{class_name}/stats")
async def class_stats(class_name: str, user: StaffOnly):
    return await classes.get_class_stats(class_name)
