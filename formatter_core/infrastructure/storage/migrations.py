"""存储 schema 迁移。

schemaVersion 只能单调递增：每一步迁移把版本从 v 升到 v+1，
按版本升序、每步恰好执行一次。启动时、命令分发器就绪前调用 migrate()。
"""

from typing import Callable, Dict

from formatter_core.domain.exceptions import SchemaVersionError
from formatter_core.domain.store_schema import SettingsStore, StoreKey
from formatter_core.infrastructure.logging.logger import logger


MigrationStep = Callable[[SettingsStore], None]


def _v0_to_v1(store: SettingsStore) -> None:
    # 初始版本，没有数据变换
    pass


# 键为迁移前的版本号
MIGRATIONS: Dict[int, MigrationStep] = {
    0: _v0_to_v1,
}

LATEST_SCHEMA_VERSION = max(MIGRATIONS) + 1


def migrate(store: SettingsStore) -> int:
    """把存储升级到 LATEST_SCHEMA_VERSION，返回实际执行的迁移步数。

    已是最新版本时不做任何事；版本号高于已知最新版本视为致命错误。
    """

    with store.locked():
        version = store.get(StoreKey.SCHEMA_VERSION)
        if version > LATEST_SCHEMA_VERSION:
            raise SchemaVersionError(
                f"Store schema version {version} is newer than supported version {LATEST_SCHEMA_VERSION}",
                {"storedVersion": version, "latestVersion": LATEST_SCHEMA_VERSION},
            )
        applied = 0
        while version < LATEST_SCHEMA_VERSION:
            step = MIGRATIONS[version]
            step(store)
            version += 1
            store.set(StoreKey.SCHEMA_VERSION, version)
            applied += 1
            logger.info(f"store migrated to schema version {version}")
        return applied
