from enum import Enum


class OverloadState(str, Enum):
    NORMAL = "normal"
    OVERLOAD = "overload"


class EventType(str, Enum):
    OVERLOAD = "overload"
    RECOVERY = "recovery"


class CommandType(str, Enum):
    MOTOR_CONTROL = "motor_control"
    ALARM_CONTROL = "alarm_control"
    MOVEMENT_CONTROL = "movement_control"
    MANUAL_CONTROL = "manual_control"
    SETTINGS_UPDATE = "settings_update"


class CommandStatus(str, Enum):
    SENT = "sent"
    ACK = "ack"


class OperatorCommand(str, Enum):
    RESET = "reset"
    MOTOR_ON = "motor_on"
    MOTOR_OFF = "motor_off"
    SET_MAX_WEIGHT = "set_max_weight"
    FORWARD = "forward"
    REVERSE = "reverse"
    STOP = "stop"
