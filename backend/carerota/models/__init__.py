from .shift import StaffMember, Rota, Shift, StaffAbsence
from .pattern import PatternTemplate, PatternDay, StaffPatternAssignment, ShiftGenerationLog
