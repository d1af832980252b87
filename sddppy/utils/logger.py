#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
import logging


class Logger(object):
    """Fixed-width table written to a log file and/or the console.

    Subclasses give the table a title and a list of (title, width, format)
    columns and write one row per logged job.

    Parameters
    ----------
        logFile: bool
            The switch of logging to files

        logToConsole: bool
            The switch of logging to console

        directory: str
            The directory (prefix) of the log file, named after the table

    Attributes
    ----------
        logger:
            The logger

        time:
            The time spent on the logged jobs
    """
    title = ""

    def __init__(self, logFile, logToConsole, directory):
        logger = logging.getLogger("sddppy." + repr(self))
        logger.setLevel(logging.INFO)
        # the table is the whole output; keep it out of the root handlers
        logger.propagate = False
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        if logFile != 0:
            logger.addHandler(
                logging.FileHandler(directory + repr(self) + ".log", mode="a"))
        if logToConsole != 0:
            logger.addHandler(logging.StreamHandler())
        self.logger = logger
        self.time = 0
        self.columns = []

    def __repr__(self):
        return ""

    @property
    def width(self):
        return sum(width for _, width, _ in self.columns)

    def _rule(self):
        self.logger.info("-" * self.width)

    def header(self):
        self._rule()
        self.logger.info("{:^{width}s}".format(self.title, width=self.width))
        self._rule()
        self.logger.info("".join(
            "{:>{width}s}".format(title, width=width)
            for title, width, _ in self.columns
        ))
        self._rule()

    def _row(self, *values):
        self.logger.info("".join(
            fmt.format(value, width=width)
            for value, (_, width, fmt) in zip(values, self.columns)
        ))

    def footer(self):
        self._rule()
        self.logger.info("Time: {} seconds".format(self.time))
        for handler in self.logger.handlers:
            handler.flush()


class LoggerSDDP(Logger):
    """Training table, one row per iteration. In asynchronous mode every row
    is one iteration completed by one worker."""
    title = "SDDP Solver"

    def __init__(self, n_processes, **kwargs):
        self.n_processes = n_processes
        super().__init__(**kwargs)
        self.columns = [("Iteration", 12, "{:>{width}d}")]
        if self.n_processes > 1:
            self.columns.append(("Worker", 8, "{:>{width}d}"))
        self.columns += [
            ("Bound", 20, "{:>{width}f}"),
            ("Value", 20, "{:>{width}f}"),
            ("Cuts", 10, "{:>{width}d}"),
            ("Time", 12, "{:>{width}f}"),
        ]

    def __repr__(self):
        return "SDDP"

    def text(self, iteration, db, pv, time, n_cuts=0, worker=None):
        if self.n_processes > 1:
            self._row(iteration, worker, db, pv, n_cuts, time)
        else:
            self._row(iteration, db, pv, n_cuts, time)
        self.time += time

    def footer(self, reason):
        super().footer()
        self.logger.info("Algorithm stops since " + str(reason))


class LoggerEvaluation(Logger):
    """Table of the policy evaluations run by the statistical stopping
    rule."""
    title = "Evaluation of the policy"

    def __init__(self, percentile, n_simulations, **kwargs):
        self.percentile = percentile
        self.n_simulations = n_simulations
        super().__init__(**kwargs)
        self.columns = [
            ("Iteration", 12, "{:>{width}d}"),
            ("Bound", 20, "{:>{width}f}"),
        ]
        if self.n_simulations != 1:
            self.columns += [
                ("Value {}% CI ({})".format(percentile, n_simulations),
                    40, "{:>{width}s}"),
            ]
        else:
            self.columns += [("Value", 20, "{:>{width}f}")]
        self.columns += [
            ("Time", 12, "{:>{width}f}"),
            ("Gap", 12, "{:>{width}.4%}"),
        ]

    def __repr__(self):
        return "Evaluation"

    def text(self, iteration, db, time, pv=None, CI=None, gap=None):
        if self.n_simulations != 1:
            value = "{:f}, {:f}".format(CI[0], CI[1])
        else:
            value = pv
        self._row(iteration, db, value, time, gap)
        self.time += time
