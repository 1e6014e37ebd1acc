#main.py  ==  LAN chat peer
           #↳ advertises itself over mDNS
           #↳ discovers other peers
           #↳ accepts encrypted messages
           #↳ fans messages out to every peer
           #↳ acts on user input
'''cryptochat/
├── main.py                 # Entry point
├── config.py / config.yaml # Settings (name, port, key file, ...)
├── peer/
│   ├── core.py             # ChatCore: wires everything, command loop
│   ├── registry.py         # Known peers, guarded by a lock
│   ├── listener.py         # Inbound connections -> display
│   ├── broadcast.py        # Outbound fan-out
│   └── discovery.py        # mDNS advertise + browse (zeroconf)
├── crypto/
│   ├── cipher.py           # AES-GCM frame bodies
│   └── keys.py             # Session key / out-of-band key file
├── protocol/
│   ├── message.py          # Message + payload variants
│   ├── framing.py          # Length-prefixed frames
│   └── errors.py           # Exceptions
└── utils/
    └── helpers.py          # Logging and formatting helpers
'''

import asyncio
import sys
from config import ConfigError, load_config
from crypto.keys import load_shared_key
from peer.core import ChatCore
from protocol.errors import BindError
from utils.helpers import get_logger, set_log_level

logger = get_logger(__name__)


def main():
    path = sys.argv[1] if len(sys.argv) > 1 else "config.yaml"
    try:
        config = load_config(path)
        set_log_level(config["log_level"])
        key = load_shared_key(config["key_file"])
    except (ConfigError, OSError, ValueError) as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    core = ChatCore(
        config["peer_name"],
        key=key,
        host=config["listen_host"],
        port=config["listen_port"],
        download_dir=config["download_dir"],
        service_type=config["service_type"],
    )
    try:
        asyncio.run(core.run())
    except BindError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted. Exiting")


if __name__ == "__main__":
    main()
