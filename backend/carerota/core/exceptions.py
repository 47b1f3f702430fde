"""
班表生成引擎的例外類型

衝突（Conflict）不是例外，而是需要呼叫端決定處理方式的排班狀況，
因此不在此定義。
"""

from typing import Optional


class CareRotaError(Exception):
    """所有排班系統錯誤的基底類別"""


class ValidationError(CareRotaError):
    """識別碼格式錯誤或缺少必要欄位；該日期/項目失敗且不會寫入任何資料"""


class AssociationError(CareRotaError):
    """班次建立後的關聯失敗

    mandatory=True 表示班表（rota）關聯失敗，班次已被補償刪除；
    mandatory=False 表示人員或指派關聯失敗，班次保留。
    """

    def __init__(self, relation: str, message: str, mandatory: bool = False,
                 shift_id: Optional[str] = None):
        super().__init__(message)
        self.relation = relation
        self.mandatory = mandatory
        self.shift_id = shift_id


class ExternalServiceError(CareRotaError):
    """外部資料服務在查詢、建立、更新或刪除時失敗"""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class LoggingError(CareRotaError):
    """生成摘要紀錄寫入失敗，永遠不會往外拋出"""
