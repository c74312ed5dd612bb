# Random seed for reproducibility (baseline sampling + GRU initialization)
RANDOM_SEED = 42

# Logging level used by forecast_bench.logging.get_logger
LOG_LEVEL = "INFO"

# Raw CSV format: header row, then "DD.MM.YYYY;price"
DELIMITER = ";"
DATE_FORMAT = "%d.%m.%Y"

# Minimum number of valid price rows accepted by the parser
MIN_ROWS = 65

# Windowing: past returns per input window, future steps per target
WINDOW_SIZE = 60
HORIZON = 5
TEST_SPLIT = 0.2

# Rolling statistics
VOLATILITY_WINDOW = 20
TRADING_DAYS = 252
# Return std below this is treated as zero volatility
ZERO_STD_TOLERANCE = 1e-12
SMA_SHORT = 50
SMA_LONG = 200

# Random-walk baseline
RW_CLIP = 0.05  # predictions clamped to [-RW_CLIP, RW_CLIP]
RW_MAX_ABS_RETURN = 1.0  # returns with |r| >= this are ignored when fitting
RW_VARIANCE_FLOOR = 1e-6
RW_DEFAULT_MEAN = 0.0
RW_DEFAULT_STD = 0.01

# GRU hyperparameters
GRU_CONFIG = {
    "units": 32,
    "dense_units": 16,
    "dropout": 0.2,
    "batch_size": 32,
    "epochs": 8,
    "validation_split": 0.1,
    "learning_rate": 1e-3,
}
