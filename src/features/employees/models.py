from typing import List, Optional

from pydantic import BaseModel, Field


class Employee(BaseModel):
    id: str = Field(..., description="Código de empleado (ej: MIN25001)")
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# --- Payload del directorio de RRHH ---

class EmployeeSync(BaseModel):
    # El directorio publica el código como 'employee_id'
    employee_id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    status: str = "active"


class DirectoryExport(BaseModel):
    employees: List[EmployeeSync] = []


class SyncReport(BaseModel):
    received: int
    upserted: int
    without_email: List[str] = []
