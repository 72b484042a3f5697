"""Init command - prepare a vault for syncing."""

import logging

from ..core.config import SyncConfig
from ..core.exceptions import ObsTaskmasterError
from ..obsidian.vault import initialize_vault


class InitCommand:
    """Creates the vault folders, README note and sync config."""

    def __init__(self, config: SyncConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    def run(self) -> bool:
        try:
            result = initialize_vault(self.config, logger=self.logger)
        except ObsTaskmasterError as e:
            print(f"❌ Could not initialize vault: {e}")
            return False
        except OSError as e:
            print(f"❌ Could not write to vault: {e}")
            return False

        print(f"\n📁 Vault: {result.vault_path}")
        for name in result.created:
            print(f"  ✅ Created {name}")
        for name in result.existing:
            print(f"  • {name} already exists, left unchanged")
        print(f"\nTasks file: {self.config.tasks_path}")
        print(f"Tag context: {self.config.tag}")
        print("\n💡 Next: obs-taskmaster sync --direction from-text")
        return True
