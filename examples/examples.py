"""Examples demonstrating progress bars, spinners and multi-bar rows"""

import sys
import time
import random
import threading

from pacebar import (
    progress,
    Bar,
    RowManager,
    Spinner,
    Animation,
    LinearGradient,
    Template,
)


def example_0():
    print("=== Example 0: Several bars updated from threads ===")

    def worker(manager, name, total, leave):
        bar = manager.create_bar(total=total, desc=name, leave=leave)
        for _ in range(total):
            time.sleep(random.uniform(0.01, 0.05))
            bar.update(1)
        bar.close()

    def stdout_worker(manager):
        for i in range(1, 10 + 1):
            time.sleep(random.uniform(0.2, 0.5))
            # print() is relayed beneath the bars while stdout is intercepted
            print(f"Demo of the multi-threaded stdout handling: Step {i}")

    with RowManager(intercept_stdout=True) as manager:
        threads = [
            threading.Thread(target=worker, args=(manager, f"Task {i}", random.randint(40, 120), i % 2 == 0))
            for i in range(1, 6 + 1)
        ]
        threads.append(threading.Thread(target=stdout_worker, args=(manager,)))

        for t in threads:
            t.start()

        for t in threads:
            t.join()


def example_1():
    print("=== Example 1: Default bar ===")

    for i in progress(range(1, 100 + 1), desc="Processing items"):
        time.sleep(0.02)


def example_2():
    print("=== Example 2: Clean mode ===")

    # Finished bars that do not leave are removed and the rows below move up
    with RowManager(clean=True) as manager:
        bars = [manager.create_bar(total=20 * i, desc=f"Job {i}", leave=False) for i in range(1, 4 + 1)]
        keeper = manager.create_bar(total=100, desc="Overall")
        while bars:
            for bar in list(bars):
                bar.update(1)
                if bar.completed():
                    bar.close()
                    bars.remove(bar)
            keeper.update(1)
            time.sleep(0.02)


def example_3():
    print("=== Example 3: Meter styles ===")

    with RowManager() as manager:
        bars = [
            manager.create_bar(total=80, desc=animation.value, animation=animation)
            for animation in Animation
        ]
        for i in range(1, 80 + 1):
            for bar in bars:
                bar.update(1)
            time.sleep(0.03)


def example_4():
    print("=== Example 4: Text only ===")

    for i in progress(range(1, 100 + 1), desc="Processing items", use_unicode=False):
        time.sleep(0.02)


def example_5():
    print("=== Example 5: Fire gradient ===")

    fire = LinearGradient((255, 0, 0), (255, 165, 0), (255, 255, 0))
    with Bar(total=100, desc="Heating up", gradient=fire) as bar:
        for i in range(1, 100 + 1):
            bar.update(1)
            time.sleep(0.02)


def example_6():
    print("=== Example 6: Custom template and postfix ===")

    template = Template("{desc} {percentage:3.0f}% {bar} loss={postfix.loss} [{rate_fmt}]")
    with Bar(total=200, desc="Training", template=template, colour="green") as bar:
        loss = 1.0
        for i in range(1, 200 + 1):
            loss *= random.uniform(0.97, 1.0)
            bar.set_postfix(loss=f"{loss:.4f}", refresh=False)
            bar.update(1)
            time.sleep(0.01)


def example_7():
    print("=== Example 7: Download with scaled units ===")

    total = 50 * 1024 * 1024
    with Bar(total=total, desc="Download", unit="B", unit_scale=True, unit_divisor=1024) as bar:
        received = 0
        while received < total:
            chunk = min(total - received, random.randint(256, 1024) * 1024)
            received += chunk
            bar.update(chunk)
            time.sleep(0.02)


def example_8():
    print("=== Example 8: Spinner styles ===")

    with RowManager() as manager:
        bars = []
        for spinner_style, use_unicode in [
            ("snake", True),
            ("dots", True),
            ("arrows", True),
            ("bouncing", True),
            ("spinner", False),
        ]:
            spinner = Spinner(style=spinner_style, use_unicode=use_unicode)
            bars.append(manager.create_bar(desc=f"Loading ({spinner_style})", spinner=spinner))

        spinner = Spinner(frames=["🌍", "🌎", "🌏"], interval=0.3)
        bars.append(manager.create_bar(desc="Loading (custom frames)", spinner=spinner))

        # Spinners keep animating between updates
        for i in range(1, 10 + 1):
            for bar in bars:
                bar.update(1)
            time.sleep(0.3)


def example_9():
    print("=== Example 9: Monitor mode ===")

    with Bar(total=5, desc="Slow steps", monitor_interval=0.1) as bar:
        for i in range(1, 5 + 1):
            # Elapsed time keeps moving while the step runs
            time.sleep(1.0)
            bar.update(1)


def example_10():
    print("=== Example 10: Messages and input ===")

    with Bar(total=10, desc="Questions") as bar:
        for i in range(1, 10 + 1):
            time.sleep(0.1)
            bar.update(1)
            if i == 5:
                bar.write("Halfway there")
        if sys.stdin.isatty():
            answer = bar.input("Continue? [y/n] ")
            bar.write(f"You said {answer!r}")


if __name__ == "__main__":
    import logging

    logging.basicConfig(level=logging.DEBUG)

    for i in range(0, 10 + 1):
        if i != 0:
            time.sleep(1)
        globals()[f"example_{i}"]()
