"""
Cycle Recorder - append-only JSONL log of every trading cycle
"""
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List

from ai_trader.utils.logger import log


class CycleRecorder:
    """Writes one JSON line per cycle to data/cycles/cycles_YYYYMMDD.jsonl"""

    def __init__(self, log_dir: str = "data/cycles"):
        """
        Args:
            log_dir: Output directory (created if missing)
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def _file_for(self, when: datetime) -> Path:
        return self.log_dir / f"cycles_{when.strftime('%Y%m%d')}.jsonl"

    def record(self, cycle: Dict) -> Path:
        """
        Append a cycle record

        Args:
            cycle: TradingCycleResult.to_dict()

        Returns:
            File the record was appended to
        """
        path = self._file_for(datetime.now())
        with open(path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(cycle, ensure_ascii=False, default=str) + "\n")
        log.debug(f"Cycle {cycle.get('cycle_id')} recorded to {path}")
        return path

    def load(self, day: datetime) -> List[Dict]:
        """All records of one day, oldest first"""
        path = self._file_for(day)
        if not path.exists():
            return []
        with open(path, 'r', encoding='utf-8') as f:
            return [json.loads(line) for line in f if line.strip()]
