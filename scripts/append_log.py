import os
import sys
import time

LOG_FILE = os.environ.get("WATCH_FILE", "latest.log")

SAMPLES = {
    "player": "[{ts}] [Client thread/INFO]: [CHAT] Разведчики засекли игрока Alice на координатах world,100.5,64,200.25",
    "building": "[{ts}] [Client thread/INFO]: [CHAT] Здание Башня лучников (45%) на координатах world,10,5,20 повреждено!",
    "repaired": "[{ts}] [Client thread/INFO]: [CHAT] Здание Башня лучников (65%) на координатах world,10,5,20 повреждено!",
}

def append(path: str, line: str):
    with open(path, "a", encoding="utf-8") as f:
        f.write(line + "\n")
    print(f"{path}: {line}")

if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else LOG_FILE
    kind = sys.argv[2] if len(sys.argv) > 2 else "player"
    if kind not in SAMPLES:
        print(f"unknown sample '{kind}', choose from: {', '.join(SAMPLES)}")
        sys.exit(2)
    append(path, SAMPLES[kind].format(ts=time.strftime("%H:%M:%S")))
