from datetime import datetime

from agbkit.gpio import GPIO, RTC, GPIODevice, SolarSensor


class RecordingDevice(GPIODevice):
    def __init__(self, level=0):
        super().__init__()
        self.level = level
        self.written = []
        self.resets = 0

    def reset(self):
        self.resets += 1

    def read(self):
        return self.level

    def write(self, value):
        self.written.append(value)


def test_gpio_reads_disabled_by_default():
    gpio = GPIO()
    gpio.attach(RecordingDevice(level=0b0010))
    assert gpio.read(GPIO.Register.DATA) == 0
    assert gpio.read(GPIO.Register.CONTROL) == 0


def test_gpio_control_enables_reads():
    gpio = GPIO()
    gpio.attach(RecordingDevice(level=0b0010))
    gpio.write(GPIO.Register.CONTROL, 1)
    assert gpio.read(GPIO.Register.CONTROL) == 1
    assert gpio.read(GPIO.Register.DATA) == 0b0010


def test_gpio_direction_sets_masks_and_devices():
    gpio = GPIO()
    device = RecordingDevice()
    gpio.attach(device)
    gpio.write(GPIO.Register.CONTROL, 1)
    gpio.write(GPIO.Register.DIRECTION, 0b0101)
    assert gpio.read(GPIO.Register.DIRECTION) == 0b1010
    assert device.is_output(0) and device.is_output(2)
    assert not device.is_output(1)


def test_gpio_data_write_masked_by_direction():
    gpio = GPIO()
    device = RecordingDevice()
    gpio.attach(device)
    gpio.write(GPIO.Register.DIRECTION, 0b0101)
    gpio.write(GPIO.Register.DATA, 0b1111)
    assert device.written == [0b0101]


def test_gpio_reset_resets_devices():
    gpio = GPIO()
    device = RecordingDevice()
    gpio.attach(device)
    gpio.write(GPIO.Register.DIRECTION, 0b1111)
    gpio.reset()
    assert device.resets == 1
    assert not device.is_output(0)
    assert gpio.rd_mask == 0b1111


def _select(rtc):
    rtc.set_port_directions(0b0111)
    rtc.write(0)
    rtc.write(0b100)


def _send_byte(rtc, value, msb_first=False):
    order = range(7, -1, -1) if msb_first else range(8)
    for i in order:
        bit = (value >> i) & 1
        rtc.write(0b100 | (bit << 1))
        rtc.write(0b101 | (bit << 1))


def _receive_bytes(rtc, count):
    rtc.set_port_directions(0b0101)
    result = []
    for _ in range(count):
        byte = 0
        for i in range(8):
            rtc.write(0b100)
            rtc.write(0b101)
            byte |= (rtc.read() >> 1) << i
        result.append(byte)
    rtc.set_port_directions(0b0111)
    return result


def test_rtc_read_control_default_24h():
    rtc = RTC()
    _select(rtc)
    _send_byte(rtc, 0xC6)
    assert _receive_bytes(rtc, 1) == [64]


def test_rtc_accepts_reversed_command():
    rtc = RTC()
    _select(rtc)
    _send_byte(rtc, 0xC6, msb_first=True)
    assert _receive_bytes(rtc, 1) == [64]


def test_rtc_write_control_round_trip():
    rtc = RTC()
    _select(rtc)
    _send_byte(rtc, 0x46)
    _send_byte(rtc, 0x02)
    assert rtc.control.unknown1 is True
    assert rtc.control.mode_24h is False
    _select(rtc)
    _send_byte(rtc, 0xC6)
    assert _receive_bytes(rtc, 1) == [0x02]


def test_rtc_read_time_is_bcd():
    fixed = datetime(2024, 3, 5, 14, 7, 9)
    rtc = RTC(now=lambda: fixed)
    _select(rtc)
    _send_byte(rtc, 0xE6)
    assert _receive_bytes(rtc, 3) == [0x14, 0x07, 0x09]


def test_rtc_force_irq_calls_callback():
    raised = []
    rtc = RTC(raise_irq=lambda: raised.append(True))
    _select(rtc)
    _send_byte(rtc, 0x36)
    assert raised == [True]


def test_rtc_force_reset_clears_control():
    rtc = RTC()
    _select(rtc)
    _send_byte(rtc, 0x06)
    assert rtc.control.mode_24h is False


def test_rtc_read_requires_chip_select():
    rtc = RTC()
    rtc.set_port_directions(0b0111)
    rtc.write(0b010)
    assert rtc.read() == 0


def _clock(sensor, pulses):
    for _ in range(pulses):
        sensor.write(0b0001)
        sensor.write(0b0000)


def test_solar_sensor_counts_until_threshold():
    sensor = SolarSensor()
    sensor.set_port_directions(0b0111)
    _clock(sensor, 159)
    assert sensor.read() == 0
    _clock(sensor, 1)
    assert sensor.read() == 1 << SolarSensor.Pin.FLG


def test_solar_sensor_reset_pin_clears_counter():
    sensor = SolarSensor()
    sensor.set_port_directions(0b0111)
    _clock(sensor, 10)
    sensor.write(0b0010)
    assert sensor.counter == 0


def test_solar_sensor_bright_light_trips_immediately():
    sensor = SolarSensor()
    sensor.set_port_directions(0b0111)
    sensor.set_light_level(255)
    assert sensor.read() == 0
    _clock(sensor, 1)
    assert sensor.read() == 8


def test_solar_sensor_ignores_input_pins():
    sensor = SolarSensor()
    sensor.set_port_directions(0)
    _clock(sensor, 5)
    assert sensor.counter == 0