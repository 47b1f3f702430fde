import logging

from carerota.core.database import create_tables, session_scope
from carerota.services.standard_patterns import seed_standard_patterns

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_db(location_id=None):
    # 創建表格
    create_tables()

    with session_scope() as db:
        # 建立標準班型（已存在的同名班型會略過）
        result = seed_standard_patterns(db, location_id)

    for error in result.errors:
        logger.error(f"標準班型初始化失敗: {error}")
    logger.info(f"數據庫初始化完成，新增標準班型 {len(result.created)} 個，略過 {len(result.skipped)} 個")
    return result


if __name__ == "__main__":
    init_db()
