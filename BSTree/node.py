import numpy as np



# Node record layout:
#     NODE_DTYPE: [value(object) | left(int64) | right(int64) | count(uint64)]
#     left / right hold handles of the children, NIL when absent.
#     count is the number of extra insertions of `value` (0 = seen once).
NIL = 0

NODE_DTYPE = np.dtype([
    ("value", object),
    ("left" , np.int64),
    ("right", np.int64),
    ("count", np.uint64),
])



# ---------- Record accessors ----------
def get_value(record):
    return record["value"]

def get_left(record) -> int:
    return int(record["left"])

def get_right(record) -> int:
    return int(record["right"])

def get_count(record) -> int:
    return int(record["count"])

def set_left(record, handle: int) -> None:
    record["left"] = handle

def set_right(record, handle: int) -> None:
    record["right"] = handle

def set_count(record, count: int) -> None:
    record["count"] = count

def set_value(record, value) -> None:
    record["value"] = value

def unpack(record):
    """
    Unpack a node record into ``(value, left, right, count)``.

    Intended for control, testing and debugging; the engine reads the
    individual fields.
    """

    return get_value(record), get_left(record), get_right(record), get_count(record)
