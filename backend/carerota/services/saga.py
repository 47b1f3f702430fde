import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# 步驟失敗時的處理方式
ON_FAILURE_ABORT = "abort"  # 執行已完成步驟的補償動作並中止
ON_FAILURE_WARN = "warn"    # 記錄為警告，繼續下一步
ON_FAILURE_LOG = "log"      # 只寫日誌，繼續下一步


@dataclass
class SagaStep:
    name: str
    action: Callable[[Dict[str, Any]], None]
    compensate: Optional[Callable[[Dict[str, Any]], None]] = None
    on_failure: str = ON_FAILURE_ABORT
    # 中止時將原始錯誤轉換成呼叫端需要的例外
    error: Optional[Callable[[Exception, Dict[str, Any]], Exception]] = None


@dataclass
class SagaOutcome:
    context: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)
    compensated: List[str] = field(default_factory=list)


class Saga:
    """依序執行的多步驟寫入，每一步可帶補償動作"""

    def __init__(self, name: str, steps: List[SagaStep]):
        self.name = name
        self.steps = steps

    def run(self, context: Optional[Dict[str, Any]] = None) -> SagaOutcome:
        outcome = SagaOutcome(context=context if context is not None else {})
        completed: List[SagaStep] = []

        for step in self.steps:
            try:
                step.action(outcome.context)
            except Exception as e:
                if step.on_failure == ON_FAILURE_WARN:
                    logger.warning(f"[{self.name}] 步驟 {step.name} 失敗（保留已完成的寫入）: {str(e)}")
                    outcome.warnings.append(f"{step.name}: {str(e)}")
                    continue
                if step.on_failure == ON_FAILURE_LOG:
                    logger.warning(f"[{self.name}] 步驟 {step.name} 失敗（略過）: {str(e)}")
                    continue

                logger.error(f"[{self.name}] 步驟 {step.name} 失敗，開始補償: {str(e)}")
                self._compensate(completed, outcome)
                if step.error is not None:
                    raise step.error(e, outcome.context) from e
                raise
            completed.append(step)

        return outcome

    def _compensate(self, completed: List[SagaStep], outcome: SagaOutcome) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                step.compensate(outcome.context)
                outcome.compensated.append(step.name)
            except Exception as e:
                logger.error(f"[{self.name}] 步驟 {step.name} 的補償動作失敗: {str(e)}")
