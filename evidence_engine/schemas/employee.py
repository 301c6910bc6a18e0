from pydantic import BaseModel, ConfigDict


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_number: str
    display_name: str
    user_id: int | None
    manager_id: int | None
    is_active: bool
