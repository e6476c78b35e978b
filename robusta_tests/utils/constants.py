RPC_PORT = 26657
P2P_PORT = 26656
GRPC_PORT = 9090

REMOTE_ROOT_DIR = "/home/celestia/.celestia-app"
PERSISTENT_VOLUME_SIZE = "100Gi"

# Numeric user the node process runs as inside the container
USER_ID = 10001
FILE_OWNER = f"{USER_ID}:{USER_ID}"

MEMORY_REQUEST = "200Mi"
MEMORY_LIMIT = "200Mi"
CPU_REQUEST = "300m"

TXSIM_BINARY = "/bin/txsim"

WEBSOCKET_PATH = "/websocket"
BOND_DENOM = "utia"
