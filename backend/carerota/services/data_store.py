"""
外部資料服務介面

班表生成引擎只透過此介面讀寫資料。實作端的任何失敗都應以
ExternalServiceError 拋出，引擎會將其累積到生成結果中。
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from ..schemas.generation import GenerationLog, GenerationLogCreate, LeaveRecord, ShiftCreateData, ShiftRecord
from ..schemas.pattern import PatternDay, PatternTemplate, StaffPatternAssignment

# 班次可建立的關聯
RELATION_ROTA = "rota"
RELATION_STAFF = "staff"
RELATION_ASSIGNMENT = "assignment"


class ShiftDataStore(ABC):
    # 是否能在一次寫入中建立班次並綁定班表；支援時不需要補償刪除
    supports_atomic_rota_binding = False

    @abstractmethod
    def get_assignment(self, assignment_id: str) -> Optional[StaffPatternAssignment]:
        ...

    @abstractmethod
    def get_template(self, template_id: str) -> Optional[PatternTemplate]:
        ...

    @abstractmethod
    def list_pattern_days(self, template_id: str) -> List[PatternDay]:
        ...

    @abstractmethod
    def list_staff_assignments(self, staff_member_id: str) -> List[StaffPatternAssignment]:
        ...

    @abstractmethod
    def list_active_assignments(self, on_date: date) -> List[StaffPatternAssignment]:
        ...

    @abstractmethod
    def find_rota_for_staff(self, staff_member_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def query_shifts(self, staff_member_id: str, start_date: date, end_date: date) -> List[ShiftRecord]:
        ...

    @abstractmethod
    def query_approved_leave(self, staff_member_id: str, start_date: date, end_date: date) -> List[LeaveRecord]:
        ...

    @abstractmethod
    def create_shift(self, data: ShiftCreateData, rota_id: Optional[str] = None) -> ShiftRecord:
        """建立班次；只有 supports_atomic_rota_binding 為 True 時才會傳入 rota_id"""

    @abstractmethod
    def delete_shift(self, shift_id: str) -> None:
        ...

    @abstractmethod
    def associate(self, shift_id: str, relation: str, target_id: str) -> None:
        ...

    @abstractmethod
    def update_last_generated_date(self, assignment_id: str, value: date) -> None:
        ...

    @abstractmethod
    def create_generation_log(self, log: GenerationLogCreate) -> None:
        ...

    @abstractmethod
    def list_generation_logs(self, assignment_id: str) -> List[GenerationLog]:
        ...
