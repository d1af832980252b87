#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Append-only cut persistence.

Every line of a cut file is one record

    stage,markov_state,rib,sense,intercept,coefficient_1,...,coefficient_n

where rib is empty for a value function without price interpolation. Floats
are written with repr so that a replayed cut is identical to the written one.
"""
import csv
from sddppy.cut import Cut
from sddppy.utils.exception import ModelConstructionError


class CutWriter(object):
    """Append cut records to a file. Each record is written with a single
    write call and flushed, so concurrent appenders never interleave within a
    record.

    Examples
    --------
    >>> with CutWriter("cuts.csv") as writer:
    ...     writer.write(0, 0, None, cut)
    """
    def __init__(self, path):
        self.path = path
        self._file = open(path, mode="a", newline="")
        self._writer = csv.writer(self._file)

    def __repr__(self):
        return "<CutWriter {}>".format(self.path)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def write(self, stage, markov_state, rib, cut):
        self._writer.writerow(
            [stage, markov_state, "" if rib is None else repr(float(rib)),
            cut.sense, repr(cut.intercept)]
            + [repr(item) for item in cut.coefficients]
        )
        self._file.flush()

    def close(self):
        if not self._file.closed:
            self._file.close()


def read_cuts(path):
    """Generator of (stage, markov_state, rib, cut) records in a cut file."""
    with open(path, newline="") as file:
        for line, row in enumerate(csv.reader(file), start=1):
            if not row:
                continue
            try:
                stage, markov_state = int(row[0]), int(row[1])
                rib = None if row[2] == "" else float(row[2])
                cut = Cut(
                    intercept=float(row[4]),
                    coefficients=[float(item) for item in row[5:]],
                    sense=row[3],
                    stage=stage,
                    markov_state=markov_state,
                )
            except (IndexError, ValueError) as error:
                raise ModelConstructionError(
                    "malformed cut record at line {} of {}: {}"
                    .format(line, path, error)
                )
            yield stage, markov_state, rib, cut
