from pyvletoolbox.bubble.bubble import BubblePointResult, DewPointResult, bubble_pressure, dew_pressure
